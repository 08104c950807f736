"""Shim cache — memoises compiled shim pairs per interface type."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from intertwine.compiler.codegen import compile_shims
from intertwine.compiler.shims import CompiledShims, Untwiner, UniversalCall
from intertwine.introspect.descriptors import InterfaceDescriptor
from intertwine.introspect.introspector import describe_interface

logger = logging.getLogger("intertwine.cache")

I = TypeVar("I")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    compilations: int = 0
    discarded: int = 0   # lost an insert race to an identical compilation


class Intertwine(Generic[I]):
    """Typed view of the compiled shims of interface ``I``.

    Obtained from :meth:`ShimCache.intertwine`; every call creates a new
    shim instance from the same compiled classes.
    """

    def __init__(self, shims: CompiledShims) -> None:
        self._shims = shims

    @property
    def descriptor(self) -> InterfaceDescriptor:
        return self._shims.descriptor

    def new_entwiner(self, any_call: UniversalCall) -> I:
        return self._shims.new_entwiner(any_call)

    def new_untwiner(self, target: I) -> Untwiner:
        return self._shims.new_untwiner(target)

    def __repr__(self) -> str:
        return f"Intertwine[{self.descriptor.name}]"


class ShimCache:
    """Registry of compiled shims keyed by interface type.

    On the first request for an interface the introspector and the compiler
    run once; the resulting :class:`CompiledShims` is stored and never
    replaced, so every entwiner and untwiner of that interface shares one
    descriptor. Lookups are lock-free; insertion is insert-if-absent under a
    lock. Two threads compiling the same interface concurrently both succeed
    and the later result is discarded.

    Usage::

        cache = ShimCache()
        counter = cache.get_entwiner(Counter, cache.get_untwiner(Counter, impl))
        counter.set(1)

    Args:
        caching: ``False`` recompiles on every request. Only for measuring
                 compilation cost; never use it in production paths.
    """

    def __init__(self, caching: bool = True) -> None:
        self.caching = caching
        self.stats = CacheStats()
        self._entries: dict[Any, CompiledShims] = {}
        self._lock = threading.Lock()
        if not caching:
            logger.warning("[Cache]    caching disabled: every shim request recompiles")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def compiled(self, interface: Any) -> CompiledShims:
        """Return the compiled shim pair for *interface*, compiling on first use."""
        if self.caching:
            entry = self._entries.get(interface)
            if entry is not None:
                with self._lock:
                    self.stats.hits += 1
                return entry

        with self._lock:
            self.stats.misses += 1
        entry = compile_shims(describe_interface(interface))
        with self._lock:
            self.stats.compilations += 1
            if not self.caching:
                return entry
            stored = self._entries.setdefault(interface, entry)
            if stored is not entry:
                self.stats.discarded += 1
        if stored is entry:
            logger.debug("[Cache]    stored %s", entry.descriptor.name)
        return stored

    def describe(self, interface: Any) -> InterfaceDescriptor:
        return self.compiled(interface).descriptor

    def __contains__(self, interface: Any) -> bool:
        return interface in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def get_entwiner(self, interface: Any, any_call: UniversalCall) -> Any:
        """Return a new object implementing *interface* that forwards every
        call to *any_call*."""
        return self.compiled(interface).new_entwiner(any_call)

    def get_untwiner(self, interface: Any, target: Any) -> Untwiner:
        """Return a new universal call that forwards to *target*, which must
        implement *interface*."""
        return self.compiled(interface).new_untwiner(target)

    def intertwine(self, interface: type[I]) -> Intertwine[I]:
        """Typed convenience: ``cache.intertwine(Counter).new_entwiner(call)``
        is statically a ``Counter``."""
        return Intertwine(self.compiled(interface))
