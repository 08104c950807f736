"""Shim compiler — generates and compiles the entwiner/untwiner pair for one
interface descriptor.

For every interface the compiler writes a small Python module containing
``EntwinerFor<Name>`` and ``UntwinerFor<Name>``, compiles it once and keeps
the resulting classes. Each generated method body is specialised for its
method: argument packing, by-reference write-back and return handling are
decided here, not on every call. For a ``Counter`` interface with
``swap(self, new: int, old: Ref[int]) -> int`` the generated code reads::

    class EntwinerForCounter(Entwiner, Counter):
        def swap(self, new, old):
            _args = [new, old.value]
            _result = self._entwined_call(2, _args)
            old.value = _args[1]
            return _result

    def _untwine_2_swap(target, args):
        return target.swap(args[0], SlotRef(args, 1))
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any

from intertwine.compiler.shims import CompiledShims, Entwiner, Untwiner
from intertwine.errors.types import PreconditionViolation, UnsupportedInterfaceShape
from intertwine.introspect.descriptors import (
    InterfaceDescriptor,
    MethodDescriptor,
    MethodKind,
    ParameterDescriptor,
    PassMode,
)
from intertwine.introspect.refs import SlotRef

logger = logging.getLogger("intertwine.compiler")

_INDENT = "    "


def compile_shims(descriptor: InterfaceDescriptor) -> CompiledShims:
    """Generate, compile and return the shim pair for *descriptor*.

    Raises:
        UnsupportedInterfaceShape: the generated entwiner would still be
            abstract, i.e. the interface has members the compiler cannot see.
    """
    started = time.perf_counter()
    entwiner_name = f"EntwinerFor{descriptor.name}"
    untwiner_name = f"UntwinerFor{descriptor.name}"

    namespace: dict[str, Any] = {
        "Entwiner": Entwiner,
        "Untwiner": Untwiner,
        "SlotRef": SlotRef,
        "PreconditionViolation": PreconditionViolation,
        "_interface": descriptor.origin,
        "_descriptor": descriptor,
    }
    lines = _entwiner_source(descriptor, entwiner_name, namespace)
    lines.append("")
    lines.extend(_untwiner_source(descriptor, untwiner_name))
    source = "\n".join(lines) + "\n"

    code = compile(source, f"<intertwine:{descriptor.origin.__qualname__}>", "exec")
    exec(code, namespace)

    entwiner_class = namespace[entwiner_name]
    untwiner_class = namespace[untwiner_name]
    module = descriptor.origin.__module__
    for cls in (entwiner_class, untwiner_class):
        cls.__module__ = module

    still_abstract = sorted(getattr(entwiner_class, "__abstractmethods__", ()))
    if still_abstract:
        raise UnsupportedInterfaceShape(
            f"{descriptor.name}: cannot implement {', '.join(still_abstract)}"
        )

    logger.debug(
        "[Compile]  %s  methods=%d  %.2fms",
        descriptor.name,
        len(descriptor),
        (time.perf_counter() - started) * 1000.0,
    )
    return CompiledShims(
        descriptor=descriptor,
        entwiner_class=entwiner_class,
        untwiner_class=untwiner_class,
        source=source,
    )


# ----------------------------------------------------------------------
# Entwiner
# ----------------------------------------------------------------------

def _entwiner_source(
    descriptor: InterfaceDescriptor,
    class_name: str,
    namespace: dict[str, Any],
) -> list[str]:
    lines = [f"class {class_name}(Entwiner, _interface):"]
    body: list[str] = ["_entwined_descriptor = _descriptor"]
    # name -> [getter function name, setter function name]
    properties: dict[str, list[str | None]] = {}

    for method in descriptor.methods:
        if method.kind is MethodKind.METHOD:
            function_name = method.name
        else:
            accessor = "get" if method.kind is MethodKind.GETTER else "set"
            function_name = f"_entwine_{accessor}_{method.name}"
            slot = 0 if method.kind is MethodKind.GETTER else 1
            properties.setdefault(method.name, [None, None])[slot] = function_name
        body.append("")
        body.extend(_entwiner_method(method, function_name, namespace))

    if properties:
        body.append("")
        for name, (getter, setter) in properties.items():
            body.append(f"{name} = property({getter}, {setter})")

    lines.extend(_INDENT + line if line else "" for line in body)
    return lines


def _entwiner_method(
    method: MethodDescriptor,
    function_name: str,
    namespace: dict[str, Any],
) -> list[str]:
    taken = {p.name for p in method.parameters} | {method.self_name}
    args = _fresh("_args", taken)
    result = _fresh("_result", taken)
    self_name = method.self_name

    signature = _signature(method, namespace)
    packed = ", ".join(_packed_argument(p) for p in method.parameters)
    call = f"{self_name}._entwined_call({method.selector}, {args})"

    lines = [f"def {function_name}({signature}):"]
    if not method.has_by_reference_parameters:
        # nothing to copy back, so the container needs no name
        call = f"{self_name}._entwined_call({method.selector}, [{packed}])"
        lines.append(_INDENT + (call if method.returns_none else f"return {call}"))
        return lines

    lines.append(f"{_INDENT}{args} = [{packed}]")
    lines.append(_INDENT + (call if method.returns_none else f"{result} = {call}"))
    for param in method.parameters:
        if param.is_by_reference:
            lines.append(f"{_INDENT}{param.name}.value = {args}[{param.position}]")
    if not method.returns_none:
        lines.append(f"{_INDENT}return {result}")
    return lines


def _packed_argument(param: ParameterDescriptor) -> str:
    if param.mode is PassMode.OUTPUT:
        return "None"
    if param.mode is PassMode.BY_REFERENCE:
        return f"{param.name}.value"
    return param.name


def _signature(method: MethodDescriptor, namespace: dict[str, Any]) -> str:
    parts = [method.self_name]
    saw_keyword_only = False
    for param in method.parameters:
        if param.kind is inspect.Parameter.KEYWORD_ONLY and not saw_keyword_only:
            parts.append("*")
            saw_keyword_only = True
        text = param.name
        if param.has_default:
            default_name = f"_default_{method.selector}_{param.position}"
            namespace[default_name] = param.default
            text = f"{text}={default_name}"
        parts.append(text)
        if param.kind is inspect.Parameter.POSITIONAL_ONLY and _last_positional_only(method, param):
            parts.append("/")
    return ", ".join(parts)


def _last_positional_only(method: MethodDescriptor, param: ParameterDescriptor) -> bool:
    following = method.parameters[param.position + 1:]
    return not following or following[0].kind is not inspect.Parameter.POSITIONAL_ONLY


def _fresh(name: str, taken: set[str]) -> str:
    while name in taken:
        name += "_"
    return name


# ----------------------------------------------------------------------
# Untwiner
# ----------------------------------------------------------------------

def _untwiner_source(descriptor: InterfaceDescriptor, class_name: str) -> list[str]:
    lines: list[str] = []
    handlers: list[str] = []
    for method in descriptor.methods:
        handler = f"_untwine_{method.selector}_{method.name}"
        handlers.append(handler)
        lines.append(f"def {handler}(target, args):")
        lines.extend(_INDENT + line for line in _untwiner_body(method))
        lines.append("")

    count = len(descriptor.methods)
    table = ", ".join(handlers) + ("," if count == 1 else "")
    lines.extend([
        f"class {class_name}(Untwiner):",
        f"{_INDENT}descriptor = _descriptor",
        f"{_INDENT}_handlers = ({table})",
        "",
        f"{_INDENT}def __call__(self, selector, args):",
        f"{_INDENT * 2}if type(selector) is not int or not 0 <= selector < {count}:",
        f"{_INDENT * 3}raise PreconditionViolation(",
        f"{_INDENT * 4}f\"selector {{selector!r}} out of range for {descriptor.name} ({count} methods)\"",
        f"{_INDENT * 3})",
        f"{_INDENT * 2}return self._handlers[selector](self._target, args)",
    ])
    return lines


def _untwiner_body(method: MethodDescriptor) -> list[str]:
    if method.kind is MethodKind.GETTER:
        return [f"return target.{method.name}"]
    if method.kind is MethodKind.SETTER:
        return [f"target.{method.name} = args[0]", "return None"]

    arguments = []
    for param in method.parameters:
        value = f"SlotRef(args, {param.position})" if param.is_by_reference else f"args[{param.position}]"
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            value = f"{param.name}={value}"
        arguments.append(value)
    call = f"target.{method.name}({', '.join(arguments)})"
    if method.returns_none:
        return [call, "return None"]
    return [f"return {call}"]
