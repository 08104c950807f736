"""Entry point — loads config, applies CLI overrides, and runs an interface-event demo."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Protocol

from intertwine.config.settings import IntertwineSettings, load_config
from intertwine.introspect.refs import Out, Ref

_DEFAULT_CONFIG = Path(__file__).parent / "config" / "default.yaml"
_QUOTES = (("AAPL", 187.25), ("MSFT", 402.10), ("AAPL", 188.00))


class PriceObserver(Protocol):
    def on_price(self, symbol: str, price: float) -> None: ...

    def on_halt(self, symbol: str, reason: str) -> None: ...

    def poll_latency(self, elapsed_ms: Out[float]) -> None: ...


class PrintingObserver:
    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.seen = 0

    def on_price(self, symbol: str, price: float) -> None:
        self.seen += 1
        if self.fail:
            raise RuntimeError(f"{self.name} cannot handle {symbol}")
        print(f"  {self.name}: {symbol} @ {price:.2f}")

    def on_halt(self, symbol: str, reason: str) -> None:
        self.seen += 1
        print(f"  {self.name}: {symbol} halted ({reason})")

    def poll_latency(self, elapsed_ms: Out[float]) -> None:
        # later observers see the earlier write; keep the slowest
        elapsed_ms.value = max(elapsed_ms.value or 0.0, 0.5 * len(self.name))

    def __repr__(self) -> str:
        return f"PrintingObserver({self.name!r})"


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s  %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    if args.no_cache:
        config.setdefault("cache", {})["enabled"] = False
    events = config.setdefault("events", {})
    if args.strict:
        events["strict"] = True
    if args.isolate:
        events["isolate_arguments"] = True
    if args.log_level:
        config.setdefault("logging", {})["level"] = args.log_level
    return config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interface event demo")
    parser.add_argument("--config", type=Path, default=_DEFAULT_CONFIG,
                        help="Path to YAML config file")
    parser.add_argument("--observers", type=int, default=3,
                        help="Number of observers to register")
    parser.add_argument("--fail-at", dest="fail_at", type=int, default=None,
                        metavar="K", help="Make observer K (1-based) raise on every price")
    parser.add_argument("--no-cache", action="store_true",
                        help="Recompile shims on every request")
    parser.add_argument("--strict", action="store_true",
                        help="Let observer failures propagate to the trigger")
    parser.add_argument("--isolate", action="store_true",
                        help="Give each observer its own argument list")
    parser.add_argument("--log-level", dest="log_level", type=str, default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Override logging level")
    parser.add_argument("--dump-source", action="store_true",
                        help="Print the generated shim source and exit")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = apply_overrides(load_config(args.config), args)
    settings = IntertwineSettings.from_dict(config)
    setup_logging(settings.log_level)

    cache = settings.new_cache()
    if args.dump_source:
        print(cache.compiled(PriceObserver).source)
        return

    manager = settings.new_event_manager(PriceObserver, cache)
    observers = [
        PrintingObserver(f"observer-{i}", fail=(i == args.fail_at))
        for i in range(1, args.observers + 1)
    ]
    for observer in observers:
        manager.source.register_observer(observer)

    for symbol, price in _QUOTES:
        manager.trigger.on_price(symbol, price)
    manager.trigger.on_halt("MSFT", "volatility")

    latency: Ref[float] = Ref()
    manager.trigger.poll_latency(latency)

    print(f"\n{manager!r}")
    for observer in observers:
        print(f"  {observer.name}: {observer.seen} calls")
    print(f"  slowest poll: {latency.value}ms")


if __name__ == "__main__":
    main()
