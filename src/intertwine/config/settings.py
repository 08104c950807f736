"""Settings — maps the YAML configuration onto cache and event options."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import yaml

from intertwine.cache.factory import ShimCache
from intertwine.events.manager import InterfaceEventManager
from intertwine.events.types import DiagnosticSink

I = TypeVar("I")


@dataclass(frozen=True)
class IntertwineSettings:
    """Runtime options.

    Config keys (all optional — defaults shown):

    .. code-block:: yaml

        cache:
          enabled: true            # false only to measure compilation cost
        events:
          strict: false            # re-raise observer failures
          isolate_arguments: false # per-observer argument copies
        logging:
          level: INFO
    """

    caching: bool = True
    strict: bool = False
    isolate_arguments: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> IntertwineSettings:
        cache_cfg = config.get("cache") or {}
        events_cfg = config.get("events") or {}
        logging_cfg = config.get("logging") or {}
        return cls(
            caching=bool(cache_cfg.get("enabled", True)),
            strict=bool(events_cfg.get("strict", False)),
            isolate_arguments=bool(events_cfg.get("isolate_arguments", False)),
            log_level=str(logging_cfg.get("level", "INFO")).upper(),
        )

    # ------------------------------------------------------------------

    def new_cache(self) -> ShimCache:
        return ShimCache(caching=self.caching)

    def new_event_manager(
        self,
        interface: type[I],
        cache: ShimCache,
        sink: DiagnosticSink | None = None,
    ) -> InterfaceEventManager[I]:
        return InterfaceEventManager(
            interface,
            cache,
            sink=sink,
            strict=self.strict,
            isolate_arguments=self.isolate_arguments,
        )


def load_config(path: Path) -> dict[str, Any]:
    with path.open() as fh:
        return yaml.safe_load(fh) or {}


def load_settings(path: Path) -> IntertwineSettings:
    return IntertwineSettings.from_dict(load_config(path))
