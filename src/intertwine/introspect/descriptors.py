"""Immutable descriptors produced by the introspector."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class PassMode(Enum):
    BY_VALUE = auto()
    BY_REFERENCE = auto()
    OUTPUT = auto()


class MethodKind(Enum):
    METHOD = auto()
    GETTER = auto()   # property read
    SETTER = auto()   # property write


@dataclass(frozen=True)
class ParameterDescriptor:
    """One parameter of an interface method.

    ``annotation`` is the declared type with any ``Ref``/``Out`` wrapper
    removed, or ``Any`` when the parameter is unannotated.
    """

    name: str
    position: int
    annotation: Any
    mode: PassMode
    kind: Any = inspect.Parameter.POSITIONAL_OR_KEYWORD
    default: Any = inspect.Parameter.empty

    @property
    def is_by_reference(self) -> bool:
        return self.mode is not PassMode.BY_VALUE

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    def __str__(self) -> str:
        prefix = {PassMode.BY_VALUE: "", PassMode.BY_REFERENCE: "ref ", PassMode.OUTPUT: "out "}
        return f"{prefix[self.mode]}{self.name}"


@dataclass(frozen=True)
class MethodDescriptor:
    """One entry of the flattened method table.

    Args:
        selector:     Zero-based ordinal; index into
                      :attr:`InterfaceDescriptor.methods`.
        name:         Attribute name on the interface.
        parameters:   Parameters in position order, ``self`` excluded.
        return_type:  Declared return type (``Any`` when unannotated).
        returns_none: ``True`` when the return annotation is ``None``.
        kind:         Plain method, property getter or property setter.
        declared_by:  The interface class whose body declares the member.
        self_name:    Name of the receiver parameter in the declaration.
    """

    selector: int
    name: str
    parameters: tuple[ParameterDescriptor, ...]
    return_type: Any
    returns_none: bool
    kind: MethodKind = MethodKind.METHOD
    declared_by: type | None = None
    self_name: str = "self"

    @property
    def has_by_reference_parameters(self) -> bool:
        return any(p.is_by_reference for p in self.parameters)

    def __str__(self) -> str:
        if self.kind is MethodKind.GETTER:
            return f"{self.name} (get)"
        if self.kind is MethodKind.SETTER:
            return f"{self.name} (set)"
        params = ", ".join(str(p) for p in self.parameters)
        return f"{self.name}({params})"


@dataclass(frozen=True, eq=False)
class InterfaceDescriptor:
    """The flattened, ordered method table of one interface type.

    Compared by identity: two descriptors of the "same" interface are not
    interchangeable, so shims must only ever be paired with the descriptor
    they were compiled from.

    Args:
        interface:  The interface as requested (a class, or a parameterised
                    generic alias such as ``Fooable[int]``).
        origin:     The interface class itself.
        interfaces: The interface followed by every interface it extends,
                    in depth-first declaration order.
        methods:    The method table; ``methods[i].selector == i``.
    """

    interface: Any
    origin: type
    interfaces: tuple[type, ...]
    methods: tuple[MethodDescriptor, ...]

    @property
    def name(self) -> str:
        return self.origin.__name__

    @property
    def member_names(self) -> tuple[str, ...]:
        """Distinct attribute names, in selector order."""
        return tuple(dict.fromkeys(m.name for m in self.methods))

    def __len__(self) -> int:
        return len(self.methods)

    def method(self, selector: int) -> MethodDescriptor:
        return self.methods[selector]

    def selector_of(self, name: str, kind: MethodKind = MethodKind.METHOD) -> int:
        """Return the selector of the member *name* of the given *kind*."""
        for method in self.methods:
            if method.name == name and method.kind is kind:
                return method.selector
        raise KeyError(f"{self.name} has no {kind.name.lower()} named {name!r}")

    def __repr__(self) -> str:
        return f"InterfaceDescriptor({self.name}, {len(self.methods)} methods)"
