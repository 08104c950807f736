"""Diagnostic logging — observer failure sink and call tracing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from intertwine.compiler.shims import UniversalCall
from intertwine.introspect.descriptors import InterfaceDescriptor

if TYPE_CHECKING:
    from intertwine.events.types import FanOutReport

logger = logging.getLogger("intertwine")


class LoggingSink:
    """Default diagnostic sink of
    :class:`~intertwine.events.manager.InterfaceEventManager`.

    Logs one ERROR record per failed observer, with the observer's traceback
    attached, so a failure is never silently dropped.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log if log is not None else logger

    def report(self, report: FanOutReport) -> None:
        for failure in report.failures:
            error = failure.error
            self._log.error(
                "[Observer]   %s.%s  observer=%r failed (%d/%d delivered): %s",
                report.interface,
                report.method,
                failure.observer,
                report.delivered - len(report.failures),
                report.delivered,
                error,
                exc_info=(type(error), error, error.__traceback__),
            )


class TracingCall:
    """Wraps a universal call and logs every call passing through it.

    Put one between an entwiner and an untwiner to watch the traffic::

        traced = TracingCall(cache.get_untwiner(Counter, impl), descriptor)
        counter = cache.get_entwiner(Counter, traced)

    Each call produces an ``In`` record with the arguments before the call and
    an ``Out`` record with the arguments after it and the result.
    """

    def __init__(
        self,
        target: UniversalCall,
        descriptor: InterfaceDescriptor | None = None,
        log: logging.Logger | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        self._target = target
        self._descriptor = descriptor
        self._log = log if log is not None else logger
        self._level = level

    def __call__(self, selector: int, args: list[Any]) -> Any:
        label = self._label(selector)
        self._log.log(self._level, "[Call]       %s In: %s", label, _dump(args))
        result = self._target(selector, args)
        self._log.log(self._level, "[Call]       %s Out: %s result=%r", label, _dump(args), result)
        return result

    def _label(self, selector: int) -> str:
        if self._descriptor is not None and 0 <= selector < len(self._descriptor):
            return f"{selector}:{self._descriptor.method(selector)}"
        return str(selector)


def _dump(args: list[Any]) -> str:
    return ", ".join(f"arg[{i}]={value!r}" for i, value in enumerate(args))
