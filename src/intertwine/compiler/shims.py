"""Base classes of generated shims and the universal calling convention."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from intertwine.errors.types import PreconditionViolation
from intertwine.introspect.descriptors import InterfaceDescriptor

UniversalCall = Callable[[int, list[Any]], Any]
"""``(selector, arguments) -> value``; ``arguments`` is mutated in place for
by-reference and output-only parameters."""


class Entwiner:
    """Base class of every generated entwiner.

    A generated subclass also derives from the interface it implements; each
    interface method packs its arguments into a list and forwards them, with
    the method's selector, to the bound :data:`UniversalCall`.

    The bound call and the descriptor live under ``_entwined_*`` names, which
    can never collide with interface members.
    """

    _entwined_descriptor: InterfaceDescriptor

    def __init__(self, any_call: UniversalCall) -> None:
        self._entwined_call = any_call

    def __repr__(self) -> str:
        return f"<{type(self).__name__} -> {self._entwined_call!r}>"


class Untwiner:
    """Base class of every generated untwiner.

    Instances are :data:`UniversalCall` callables: ``untwiner(selector, args)``
    invokes the method at *selector* on :attr:`target`.
    """

    descriptor: InterfaceDescriptor

    def __init__(self, target: Any) -> None:
        self._target = target

    @property
    def target(self) -> Any:
        """The object receiving the untwined calls."""
        return self._target

    @property
    def interface(self) -> Any:
        return self.descriptor.interface

    def __call__(self, selector: int, args: list[Any]) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} -> {self._target!r}>"


def call_of(entwiner: Entwiner) -> UniversalCall:
    """Return the universal call an entwiner forwards to."""
    return entwiner._entwined_call


def descriptor_of(entwiner: Entwiner) -> InterfaceDescriptor:
    return entwiner._entwined_descriptor


@dataclass(frozen=True)
class CompiledShims:
    """The paired shim classes compiled from one descriptor.

    Args:
        descriptor:      The descriptor both classes were generated from.
        entwiner_class:  Implements the interface; constructed with a
                         :data:`UniversalCall`.
        untwiner_class:  Implements :data:`UniversalCall`; constructed with a
                         target.
        source:          The generated Python source, for inspection.
    """

    descriptor: InterfaceDescriptor
    entwiner_class: type[Entwiner]
    untwiner_class: type[Untwiner]
    source: str

    def new_entwiner(self, any_call: UniversalCall) -> Any:
        if not callable(any_call):
            raise PreconditionViolation(f"{any_call!r} is not callable")
        return self.entwiner_class(any_call)

    def new_untwiner(self, target: Any) -> Untwiner:
        missing = [name for name in self.descriptor.member_names if not _provides(target, name)]
        if missing:
            raise PreconditionViolation(
                f"{type(target).__name__} does not implement {self.descriptor.name}: "
                f"missing {', '.join(missing)}"
            )
        return self.untwiner_class(target)


def _provides(target: Any, name: str) -> bool:
    # static lookup; hasattr() would run property getters
    if name in getattr(target, "__dict__", ()):
        return True
    return any(name in vars(klass) for klass in type(target).__mro__)
