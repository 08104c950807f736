"""Tests for the shim compiler (entwiner/untwiner round trips)."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, Protocol, TypeVar

import pytest

from intertwine.compiler.codegen import compile_shims
from intertwine.compiler.shims import CompiledShims, Entwiner, Untwiner, call_of, descriptor_of
from intertwine.errors.types import PreconditionViolation
from intertwine.introspect.introspector import describe_interface
from intertwine.introspect.refs import Out, Ref, SlotRef

T = TypeVar("T")


class Counter(Protocol):
    def set(self, x: int) -> None: ...

    def get(self) -> int: ...

    def swap(self, new: int, old: Ref[int]) -> None: ...


class CounterImpl:
    def __init__(self) -> None:
        self.value = 0

    def set(self, x: int) -> None:
        self.value = x

    def get(self) -> int:
        return self.value

    def swap(self, new: int, old: Ref[int]) -> None:
        self.value = old.value
        old.value = new


class Fooable(Protocol[T]):
    def aardvark(self) -> None: ...

    def buffalo(self) -> T: ...

    def crocodile(self, t: T) -> None: ...

    def dog(self, t: T, ot: Out[T]) -> None: ...

    def eagle(self, t: T, rt: Ref[T]) -> None: ...

    @property
    def flamingo(self) -> T: ...

    @flamingo.setter
    def flamingo(self, value: T) -> None: ...


class FooImplementation(Generic[T]):
    def __init__(self, default: T) -> None:
        self.member = default

    def aardvark(self) -> None:
        pass

    def buffalo(self) -> T:
        return self.member

    def crocodile(self, t: T) -> None:
        self.member = t

    def dog(self, t: T, ot: Out[T]) -> None:
        ot.value = t

    def eagle(self, t: T, rt: Ref[T]) -> None:
        self.member = rt.value
        rt.value = t

    @property
    def flamingo(self) -> T:
        return self.member

    @flamingo.setter
    def flamingo(self, value: T) -> None:
        self.member = value


@dataclass(frozen=True)
class SomeBigStruct:
    a: int
    b: int
    c: int
    d: int


class Options(Protocol):
    def configure(self, name: str, /, level: int = 3, *, verbose: bool = False,
                  tag: str | None = None) -> str: ...


class OptionsImpl:
    def configure(self, name: str, /, level: int = 3, *, verbose: bool = False,
                  tag: str | None = None) -> str:
        return f"{name}:{level}:{verbose}:{tag}"


class Table(ABC):
    @abstractmethod
    def __getitem__(self, key: str) -> int: ...

    @abstractmethod
    def __setitem__(self, key: str, value: int) -> None: ...

    @abstractmethod
    def __len__(self) -> int: ...


class DictTable(Table):
    def __init__(self) -> None:
        self.data: dict[str, int] = {}

    def __getitem__(self, key: str) -> int:
        return self.data[key]

    def __setitem__(self, key: str, value: int) -> None:
        self.data[key] = value

    def __len__(self) -> int:
        return len(self.data)


class Clashing(Protocol):
    def pack(self, _args: int, _result: Ref[int]) -> int: ...


class ClashingImpl:
    def pack(self, _args: int, _result: Ref[int]) -> int:
        _result.value = _args * 2
        return _args + 1


class Shouty(Protocol):
    def ping(self) -> None: ...


class Empty(Protocol):
    pass


def _loop(interface: Any, target: Any) -> Any:
    shims = compile_shims(describe_interface(interface))
    return shims.new_entwiner(shims.new_untwiner(target))


# ----------------------------------------------------------------------
# Round trips
# ----------------------------------------------------------------------


def test_set_get_swap_scenario() -> None:
    counter = _loop(Counter, CounterImpl())

    counter.set(1)
    assert counter.get() == 1

    old = Ref(1)
    counter.swap(2, old)
    assert old.value == 2
    assert counter.get() == 1


def test_entwiner_is_instance_of_interface_and_entwiner() -> None:
    counter = _loop(Counter, CounterImpl())
    assert isinstance(counter, Entwiner)
    assert Counter in type(counter).__mro__
    assert type(counter).__name__ == "EntwinerForCounter"


_FOO_VALUES = [
    (True, False, False),
    (-1000000, 1000001, 0),
    (-6000000000, 6000000000, 0),
    (1.618034, 3.14159, 0.0),
    (datetime(1969, 4, 8, 17, 34, 29), datetime(2011, 6, 1, 23, 25, 12), None),
    (timedelta(hours=1, minutes=38, seconds=42), timedelta(hours=12, minutes=11, seconds=2), None),
    (uuid.UUID("473df440-c936-4c27-9e9a-02219ab38b13"), uuid.UUID("43806818-1dd7-44fe-9bd7-736e44c9030d"), None),
    ("foo!", "spoon!", None),
    (SomeBigStruct(100, 100, 100, 100), SomeBigStruct(225, 225, 225, 225), None),
]


@pytest.mark.parametrize("t1,t2,default", _FOO_VALUES)
def test_fooable_round_trip_matches_direct_calls(t1, t2, default) -> None:
    fooable = _loop(Fooable[type(t1)], FooImplementation(default))

    fooable.aardvark()
    assert fooable.buffalo() == default
    fooable.crocodile(t1)
    assert fooable.buffalo() == t1

    out = Ref()
    fooable.dog(t1, out)
    assert out.value == t1

    a = Ref(t1)
    fooable.eagle(t2, a)
    assert fooable.buffalo() == t1
    assert a.value == t2

    fooable.flamingo = t2
    assert fooable.flamingo == t2


def test_output_parameter_ignores_incoming_value() -> None:
    seen: list[Any] = []

    class Spy:
        def aardvark(self) -> None: ...
        def buffalo(self) -> Any: ...
        def crocodile(self, t: Any) -> None: ...
        def eagle(self, t: Any, rt: Ref[Any]) -> None: ...
        flamingo = None

        def dog(self, t: Any, ot: Out[Any]) -> None:
            seen.append(ot.value)
            ot.value = t

    fooable = _loop(Fooable[int], Spy())
    out = Ref(99)
    fooable.dog(5, out)
    assert seen == [None]
    assert out.value == 5


def test_keyword_only_positional_only_and_defaults() -> None:
    options = _loop(Options, OptionsImpl())
    assert options.configure("a") == "a:3:False:None"
    assert options.configure("b", 7, verbose=True) == "b:7:True:None"
    assert options.configure("c", level=1, tag="x") == "c:1:False:x"
    with pytest.raises(TypeError):
        options.configure(name="d")


def test_abstract_dunder_methods_are_forwarded() -> None:
    table = _loop(Table, DictTable())
    table["x"] = 4
    assert table["x"] == 4
    assert len(table) == 1
    assert isinstance(table, Table)


def test_parameter_names_clashing_with_generated_locals() -> None:
    clashing = _loop(Clashing, ClashingImpl())
    result = Ref(0)
    assert clashing.pack(20, result) == 21
    assert result.value == 40


def test_void_method_discards_target_return_value() -> None:
    class Chatty:
        def ping(self) -> str:
            return "pong"

    shouty = _loop(Shouty, Chatty())
    assert shouty.ping() is None


def test_interface_without_methods_compiles() -> None:
    shims = compile_shims(describe_interface(Empty))
    untwiner = shims.new_untwiner(object())
    with pytest.raises(PreconditionViolation):
        untwiner(0, [])


# ----------------------------------------------------------------------
# Untwiner
# ----------------------------------------------------------------------


def test_untwiner_direct_call_returns_generic_values() -> None:
    shims = compile_shims(describe_interface(Counter))
    impl = CounterImpl()
    untwiner = shims.new_untwiner(impl)
    d = shims.descriptor

    assert untwiner(d.selector_of("set"), [7]) is None
    assert untwiner(d.selector_of("get"), []) == 7
    args = [8, 3]
    assert untwiner(d.selector_of("swap"), args) is None
    assert args == [8, 8]
    assert impl.value == 3


def test_untwiner_hands_slot_refs_to_target() -> None:
    received: list[Any] = []

    class Recorder(CounterImpl):
        def swap(self, new: int, old: Ref[int]) -> None:
            received.append(old)
            old.value = new

    shims = compile_shims(describe_interface(Counter))
    shims.new_untwiner(Recorder())(2, [5, 1])
    assert isinstance(received[0], SlotRef)


@pytest.mark.parametrize("selector", [-1, 3, 100, 0.5, "0", True])
def test_untwiner_rejects_invalid_selector(selector: Any) -> None:
    shims = compile_shims(describe_interface(Counter))
    untwiner = shims.new_untwiner(CounterImpl())
    with pytest.raises(PreconditionViolation, match="out of range"):
        untwiner(selector, [])


def test_untwiner_exposes_target_and_interface() -> None:
    shims = compile_shims(describe_interface(Counter))
    impl = CounterImpl()
    untwiner = shims.new_untwiner(impl)
    assert isinstance(untwiner, Untwiner)
    assert untwiner.target is impl
    assert untwiner.interface is Counter
    assert untwiner.descriptor is shims.descriptor


def test_untwiner_rejects_target_missing_members() -> None:
    class Partial:
        def set(self, x: int) -> None: ...

    shims = compile_shims(describe_interface(Counter))
    with pytest.raises(PreconditionViolation, match="get, swap"):
        shims.new_untwiner(Partial())


def test_entwiner_rejects_non_callable() -> None:
    shims = compile_shims(describe_interface(Counter))
    with pytest.raises(PreconditionViolation):
        shims.new_entwiner(42)


# ----------------------------------------------------------------------
# Entwiner
# ----------------------------------------------------------------------


def test_entwiner_packs_arguments_for_universal_call() -> None:
    calls: list[tuple[int, list[Any]]] = []

    def any_call(selector: int, args: list[Any]) -> Any:
        calls.append((selector, list(args)))
        if selector == 2:
            args[1] = "written"
        return 11

    shims = compile_shims(describe_interface(Counter))
    counter = shims.new_entwiner(any_call)

    counter.set(5)
    assert counter.get() == 11
    old = Ref("before")
    counter.swap(9, old)

    assert calls == [(0, [5]), (1, []), (2, [9, "before"])]
    assert old.value == "written"
    assert call_of(counter) is any_call
    assert descriptor_of(counter) is shims.descriptor


def test_generated_source_is_kept() -> None:
    shims = compile_shims(describe_interface(Counter))
    assert isinstance(shims, CompiledShims)
    assert "class EntwinerForCounter(Entwiner, _interface):" in shims.source
    assert "class UntwinerForCounter(Untwiner):" in shims.source
    assert "SlotRef(args, 1)" in shims.source


def test_shims_share_one_descriptor() -> None:
    d = describe_interface(Counter)
    shims = compile_shims(d)
    assert shims.entwiner_class._entwined_descriptor is d
    assert shims.untwiner_class.descriptor is d
