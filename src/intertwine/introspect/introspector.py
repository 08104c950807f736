"""Interface introspector — flattens an interface into an ordered method table."""

from __future__ import annotations

import inspect
import re
import typing
from abc import ABC, ABCMeta
from typing import Any, Generic, Protocol, TypeVar

from intertwine.errors.types import PreconditionViolation, UnsupportedInterfaceShape
from intertwine.introspect.descriptors import (
    InterfaceDescriptor,
    MethodDescriptor,
    MethodKind,
    ParameterDescriptor,
    PassMode,
)
from intertwine.introspect.refs import Out, Ref

_MARKER_BASES = (object, ABC, Generic, Protocol)
_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
# unresolvable string annotations, e.g. "refs.Out[int]"
_OUT_TEXT = re.compile(r"^(?:\w+\.)*Out(?:\[|$)")
_REF_TEXT = re.compile(r"^(?:\w+\.)*Ref(?:\[|$)")


def interface_origin(candidate: Any) -> type | None:
    """Return the interface class behind *candidate*, or ``None`` if
    *candidate* does not denote an interface.

    An interface is a :class:`typing.Protocol` class, or an ``ABCMeta`` class
    that still has abstract members. Parameterised aliases such as
    ``Fooable[int]`` denote their origin class.
    """
    origin = typing.get_origin(candidate) or candidate
    if not isinstance(origin, type) or origin in _MARKER_BASES:
        return None
    if getattr(origin, "_is_protocol", False):
        return origin
    if isinstance(origin, ABCMeta) and origin.__abstractmethods__:
        return origin
    return None


def is_interface(candidate: Any) -> bool:
    return interface_origin(candidate) is not None


def describe_interface(interface: Any) -> InterfaceDescriptor:
    """Build the :class:`InterfaceDescriptor` for *interface*.

    Interfaces are visited depth first: *interface* itself, then each
    interface it directly extends in declaration order, skipping any already
    visited. Members are then taken from each visited interface's own class
    body in declaration order; a name seen earlier is not added again, so a
    redeclaration in a derived interface wins and diamonds are flattened.

    The result depends only on the class definitions, so repeated calls give
    the same selectors.

    Raises:
        PreconditionViolation:     *interface* is not an interface type.
        UnsupportedInterfaceShape: a member cannot be expressed as a shim.
    """
    origin = interface_origin(interface)
    if origin is None:
        raise PreconditionViolation(f"{interface!r} is not an interface type")

    interfaces = _collect_interfaces(origin)
    type_params = frozenset(
        param for iface in interfaces for param in getattr(iface, "__parameters__", ())
    )
    methods: list[MethodDescriptor] = []
    seen: set[str] = set()

    for declaring in interfaces:
        for name, member in vars(declaring).items():
            if name in seen or not _is_member(name, member):
                continue
            if isinstance(member, property):
                if member.fget is not None:
                    methods.append(
                        _describe_function(member.fget, name, len(methods), declaring,
                                           MethodKind.GETTER, type_params)
                    )
                if member.fset is not None:
                    methods.append(
                        _describe_function(member.fset, name, len(methods), declaring,
                                           MethodKind.SETTER, type_params)
                    )
            else:
                methods.append(
                    _describe_function(member, name, len(methods), declaring,
                                       MethodKind.METHOD, type_params)
                )
            seen.add(name)

    return InterfaceDescriptor(
        interface=interface,
        origin=origin,
        interfaces=tuple(interfaces),
        methods=tuple(methods),
    )


# ----------------------------------------------------------------------
# Traversal
# ----------------------------------------------------------------------

def _collect_interfaces(origin: type) -> list[type]:
    visited: list[type] = []

    def visit(iface: type) -> None:
        visited.append(iface)
        for base in iface.__bases__:
            base_origin = interface_origin(base)
            if base_origin is not None and base_origin not in visited:
                visit(base_origin)

    visit(origin)
    return visited


def _is_member(name: str, member: Any) -> bool:
    if not (inspect.isfunction(member) or isinstance(member, property)):
        return False
    if not name.startswith("_"):
        return True
    return bool(getattr(member, "__isabstractmethod__", False))


# ----------------------------------------------------------------------
# Member description
# ----------------------------------------------------------------------

def _describe_function(
    func: Any,
    name: str,
    selector: int,
    declaring: type,
    kind: MethodKind,
    type_params: frozenset[Any],
) -> MethodDescriptor:
    where = f"{declaring.__name__}.{name}"
    if getattr(func, "__type_params__", ()):
        raise UnsupportedInterfaceShape(f"{where}: methods with their own type parameters are not supported")

    signature = inspect.signature(func)
    params = list(signature.parameters.values())
    if not params or params[0].kind in _VARIADIC or params[0].kind is inspect.Parameter.KEYWORD_ONLY:
        raise UnsupportedInterfaceShape(f"{where}: expected an instance method")

    hints = _type_hints(func)
    self_name = params[0].name
    parameters: list[ParameterDescriptor] = []
    for position, param in enumerate(params[1:]):
        if param.kind in _VARIADIC:
            raise UnsupportedInterfaceShape(f"{where}: variadic parameter {param.name!r} is not supported")
        hint = hints.get(param.name, inspect.Parameter.empty)
        _check_type_vars(hint, type_params, where)
        mode, annotation = _pass_mode(hint)
        parameters.append(
            ParameterDescriptor(
                name=param.name,
                position=position,
                annotation=annotation,
                mode=mode,
                kind=param.kind,
                default=param.default,
            )
        )

    return_hint = hints.get("return", inspect.Parameter.empty)
    _check_type_vars(return_hint, type_params, where)
    returns_none = return_hint is None or return_hint is type(None) or return_hint == "None"
    if kind is MethodKind.GETTER:
        returns_none = False
    elif kind is MethodKind.SETTER:
        returns_none = True

    return MethodDescriptor(
        selector=selector,
        name=name,
        parameters=tuple(parameters),
        return_type=Any if return_hint is inspect.Parameter.empty else return_hint,
        returns_none=returns_none,
        kind=kind,
        declared_by=declaring,
        self_name=self_name,
    )


def _type_hints(func: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except NameError:
        # forward references to names not visible from the function's module;
        # the raw strings are still enough to recognise Ref/Out
        return dict(getattr(func, "__annotations__", {}))


def _pass_mode(hint: Any) -> tuple[PassMode, Any]:
    if hint is inspect.Parameter.empty:
        return PassMode.BY_VALUE, Any
    if isinstance(hint, str):
        text = hint.strip()
        if _OUT_TEXT.match(text):
            return PassMode.OUTPUT, Any
        if _REF_TEXT.match(text):
            return PassMode.BY_REFERENCE, Any
        return PassMode.BY_VALUE, hint

    origin = typing.get_origin(hint) or hint
    if isinstance(origin, type) and issubclass(origin, Ref):
        args = typing.get_args(hint)
        inner = args[0] if args else Any
        mode = PassMode.OUTPUT if issubclass(origin, Out) else PassMode.BY_REFERENCE
        return mode, inner
    return PassMode.BY_VALUE, hint


def _check_type_vars(hint: Any, type_params: frozenset[Any], where: str) -> None:
    for var in _free_type_vars(hint):
        if var not in type_params:
            raise UnsupportedInterfaceShape(
                f"{where}: type variable {var.__name__} is not a parameter of the interface"
            )


def _free_type_vars(hint: Any) -> list[TypeVar]:
    if isinstance(hint, TypeVar):
        return [hint]
    found: list[TypeVar] = []
    for arg in typing.get_args(hint):
        if isinstance(arg, list):  # Callable[[...], R]
            for item in arg:
                found.extend(_free_type_vars(item))
        else:
            found.extend(_free_type_vars(arg))
    return found
