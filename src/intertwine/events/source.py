"""Registration surface of an interface event."""

from __future__ import annotations

from typing import Protocol, TypeVar

I = TypeVar("I", contravariant=True)


class InterfaceEventSource(Protocol[I]):
    """What a subscriber sees of an event: register, unregister, query.

    Publishers keep the manager and call its ``trigger``; everybody else gets
    only this view.
    """

    def set_observer_registration(self, register: bool, observer: I) -> None:
        """Register (``register=True``) or unregister *observer*."""
        ...

    def register_observer(self, observer: I) -> None: ...

    def unregister_observer(self, observer: I) -> None: ...

    def is_observer_registered(self, observer: I) -> bool: ...
