"""Exception hierarchy for shim compilation and interface events."""

from __future__ import annotations


class IntertwineError(Exception):
    """Base class for every error raised by this package."""


class PreconditionViolation(IntertwineError, AssertionError):
    """A caller bug: a non-interface type was handed to the shim machinery,
    an untwiner received a selector outside its method table, or a target
    does not provide the members of the interface it is untwined for.

    Never retried; it always points at a mistake in calling code.
    """


class DuplicateRegistration(PreconditionViolation):
    """An observer was registered while already registered."""


class UnknownObserver(PreconditionViolation):
    """An observer was unregistered without having been registered."""


class UnsupportedInterfaceShape(IntertwineError, TypeError):
    """The interface declares something the shim compiler cannot express,
    e.g. variadic parameters or a method with its own type parameters.

    Raised when the interface is first compiled, never at call time.
    """
