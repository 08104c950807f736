"""Outcome records produced by interface-event fan-out."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class ObserverInvocationFailure:
    """One observer raised while an event was being delivered to it."""

    observer: Any
    selector: int
    method: str
    error: Exception


@dataclass(frozen=True)
class FanOutReport:
    """Summary of one trigger call.

    Only reports carrying failures are handed to the diagnostic sink.
    """

    interface: str
    selector: int
    method: str
    delivered: int       # observers invoked, including the failing ones
    failures: tuple[ObserverInvocationFailure, ...]

    @property
    def ok(self) -> bool:
        return not self.failures


class DiagnosticSink(Protocol):
    """Receives fan-out reports that contain observer failures."""

    def report(self, report: FanOutReport) -> None: ...
