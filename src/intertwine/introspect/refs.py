"""Mutable cells used for by-reference and output-only parameters."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Ref(Generic[T]):
    """A mutable cell passed where an interface method declares ``Ref[T]``.

    The callee reads and writes :attr:`value`; the caller sees the last value
    written once the call returns::

        old = Ref(1)
        counter.swap(2, old)
        old.value   # whatever the implementation stored
    """

    __slots__ = ("value",)

    def __init__(self, value: T | None = None) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class Out(Ref[T]):
    """Annotation marker for output-only parameters.

    The caller's incoming value is never read; the argument slot starts out as
    ``None`` and whatever the callee writes is copied back. Any :class:`Ref`
    instance may be passed for an ``Out[T]`` parameter.
    """

    __slots__ = ()


class SlotRef(Ref[Any]):
    """A :class:`Ref` bound to one slot of an argument container.

    Untwiners hand these to the target so that a write through ``value`` lands
    directly in the container the entwiner reads back from.
    """

    __slots__ = ("_args", "_index")

    def __init__(self, args: list[Any], index: int) -> None:
        self._args = args
        self._index = index

    @property
    def value(self) -> Any:  # type: ignore[override]
        return self._args[self._index]

    @value.setter
    def value(self, new_value: Any) -> None:
        self._args[self._index] = new_value
