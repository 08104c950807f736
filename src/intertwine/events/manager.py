"""Interface event manager — typed multicast over one interface."""

from __future__ import annotations

import logging
import threading
from typing import Any, Generic, TypeVar

from intertwine.cache.factory import ShimCache
from intertwine.compiler.shims import Untwiner
from intertwine.errors.types import DuplicateRegistration, UnknownObserver
from intertwine.events.source import InterfaceEventSource
from intertwine.events.types import DiagnosticSink, FanOutReport, ObserverInvocationFailure
from intertwine.logger.handler import LoggingSink

logger = logging.getLogger("intertwine.events")

I = TypeVar("I")


class InterfaceEventManager(Generic[I]):
    """Owns one interface event.

    :attr:`trigger` implements ``I``; every call on it is delivered, in
    registration order, to each observer registered at the moment of the
    call. Observers are registered through :attr:`source`.

    Usage::

        manager = InterfaceEventManager(PriceObserver, cache)
        manager.source.register_observer(chart)
        manager.trigger.on_price("AAPL", 187.5)

    A failing observer never stops delivery to the others and never reaches
    the caller of :attr:`trigger`: each failure becomes an
    :class:`~intertwine.events.types.ObserverInvocationFailure` and the
    aggregated :class:`~intertwine.events.types.FanOutReport` goes to *sink*.

    All observers of one call share the same argument list, so an observer
    sees whatever an earlier observer wrote into ``Ref``/``Out`` parameters,
    and the trigger's caller sees the last write.

    Args:
        interface:         The event interface. Its methods should return
                           ``None``; return values are discarded.
        cache:             Shim cache supplying the entwiner and untwiners.
        sink:              Receives reports with failures (default:
                           :class:`~intertwine.logger.handler.LoggingSink`).
        strict:            Re-raise the first observer failure immediately,
                           skipping the remaining observers. For debugging.
        isolate_arguments: Give each observer its own copy of the argument
                           list; writes to by-reference parameters are then
                           not passed on and not returned to the caller.
    """

    def __init__(
        self,
        interface: type[I],
        cache: ShimCache,
        *,
        sink: DiagnosticSink | None = None,
        strict: bool = False,
        isolate_arguments: bool = False,
    ) -> None:
        self._intertwine = cache.intertwine(interface)
        self._descriptor = self._intertwine.descriptor
        self._sink: DiagnosticSink = sink if sink is not None else LoggingSink()
        self.strict = strict
        self.isolate_arguments = isolate_arguments
        self._untwiners: list[Untwiner] = []
        self._lock = threading.Lock()
        self._trigger: I = self._intertwine.new_entwiner(self._any_call)

    @property
    def trigger(self) -> I:
        """Call methods on this to fire the event."""
        return self._trigger

    @property
    def source(self) -> InterfaceEventSource[I]:
        """The registration surface to hand to subscribers."""
        return self

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_observer(self, observer: I) -> None:
        """Append *observer* to the delivery list.

        Raises:
            DuplicateRegistration: *observer* is already registered.
            PreconditionViolation: *observer* does not implement the interface.
        """
        untwiner = self._intertwine.new_untwiner(observer)
        with self._lock:
            if self._index_of(observer) >= 0:
                raise DuplicateRegistration(
                    f"{observer!r} is already registered with {self._descriptor.name}"
                )
            self._untwiners.append(untwiner)
            count = len(self._untwiners)
        logger.debug("[Register]   %s +%r (%d observers)", self._descriptor.name, observer, count)

    def unregister_observer(self, observer: I) -> None:
        """Remove *observer*.

        Raises:
            UnknownObserver: *observer* is not registered.
        """
        with self._lock:
            index = self._index_of(observer)
            if index < 0:
                raise UnknownObserver(f"{observer!r} is not registered with {self._descriptor.name}")
            del self._untwiners[index]
            count = len(self._untwiners)
        logger.debug("[Unregister] %s -%r (%d observers)", self._descriptor.name, observer, count)

    def set_observer_registration(self, register: bool, observer: I) -> None:
        if register:
            self.register_observer(observer)
        else:
            self.unregister_observer(observer)

    def is_observer_registered(self, observer: I) -> bool:
        with self._lock:
            return self._index_of(observer) >= 0

    @property
    def observers(self) -> tuple[Any, ...]:
        """Registered observers, in registration order."""
        with self._lock:
            return tuple(u.target for u in self._untwiners)

    def __len__(self) -> int:
        with self._lock:
            return len(self._untwiners)

    def __repr__(self) -> str:
        return f"<InterfaceEventManager[{self._descriptor.name}] {len(self)} observers>"

    def _index_of(self, observer: Any) -> int:
        # caller holds the lock
        for index, untwiner in enumerate(self._untwiners):
            if untwiner.target is observer:
                return index
        return -1

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _any_call(self, selector: int, args: list[Any]) -> None:
        with self._lock:
            snapshot = tuple(self._untwiners)

        failures: list[ObserverInvocationFailure] = []
        for untwiner in snapshot:
            call_args = list(args) if self.isolate_arguments else args
            try:
                untwiner(selector, call_args)
            except Exception as error:
                if self.strict:
                    raise
                failures.append(
                    ObserverInvocationFailure(
                        observer=untwiner.target,
                        selector=selector,
                        method=self._descriptor.method(selector).name,
                        error=error,
                    )
                )

        if failures:
            report = FanOutReport(
                interface=self._descriptor.name,
                selector=selector,
                method=self._descriptor.method(selector).name,
                delivered=len(snapshot),
                failures=tuple(failures),
            )
            try:
                self._sink.report(report)
            except Exception:
                logger.exception(
                    "[Observer]   %s.%s  sink %r failed reporting %d observer failure(s)",
                    report.interface,
                    report.method,
                    self._sink,
                    len(failures),
                )
                LoggingSink(logger).report(report)
        return None
