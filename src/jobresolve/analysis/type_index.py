"""
Type Graph Index

Rust Pattern: rustc_resolve::Resolver (symbol table + definitions registry)

Built once per resolution request from the loaded modules and read-only
afterwards. It answers two questions for the rest of the pipeline:

- identity: map any type identity (name, TypeRef, descriptor, runtime class)
  to the canonical TypeDescriptor, and back
- structure: the types of a module, method overloads, transitive interfaces

The index is a snapshot: types synthesized into a module after the index was
built are not visible through it.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .module_system.module_info import Module
from ..shared.descriptors import MethodDescriptor, MethodId, TypeDescriptor
from ..shared.errors import NotFoundError
from ..shared.typeref import TypeRef

logger = logging.getLogger(__name__)


def canonical_name(identity: Any) -> Optional[str]:
    """
    Canonical type name of an identity from either layer.

    Accepts a name, a TypeRef (its template), a TypeDescriptor, any object with
    a ``full_name`` attribute, or a Python class (``module.QualName``).
    """
    if identity is None:
        return None
    if isinstance(identity, str):
        return identity
    if isinstance(identity, TypeRef):
        return identity.name
    if isinstance(identity, TypeDescriptor):
        return identity.full_name
    full_name = getattr(identity, "full_name", None)
    if isinstance(full_name, str):
        return full_name
    if isinstance(identity, type):
        return f"{identity.__module__}.{identity.__qualname__}"
    return None


class TypeGraphIndex:
    """
    Queryable index of every type and method definition in a set of modules.

    - types_of(module): ordered type descriptors of a module
    - descriptor_for(identity) / identity_of(descriptor): canonical lookup both ways
    - lookup(module, identity): lookup restricted to one module
    - find_method(type, name, ...): best overload or NotFoundError
    - interfaces_of / has_capability: transitive interface queries
    """

    def __init__(self, modules: Sequence[Module]):
        self._module_order: List[str] = []
        self._types_by_module: Dict[str, Tuple[TypeDescriptor, ...]] = {}
        self._types: Dict[str, TypeDescriptor] = {}
        self._methods: Dict[MethodId, MethodDescriptor] = {}
        self._interface_cache: Dict[str, Tuple[TypeDescriptor, ...]] = {}
        for module in modules:
            self._add_module(module)
        logger.debug(f"Indexed {len(self._types)} types and {len(self._methods)} methods "
                     f"from {len(self._module_order)} modules")

    def _add_module(self, module: Module) -> None:
        key = module.identity
        if key in self._types_by_module:
            return
        self._module_order.append(key)
        self._types_by_module[key] = tuple(module.types)
        for t in module.types:
            if t.full_name in self._types:
                logger.warning(
                    f"Type {t.full_name} defined in both {self._types[t.full_name].module} "
                    f"and {module.name}; keeping the first"
                )
                continue
            self._types[t.full_name] = t
            for m in t.methods:
                self._methods.setdefault(m.id, m)

    # ---------- Identity ----------

    def descriptor_for(self, identity: Any) -> Optional[TypeDescriptor]:
        name = canonical_name(identity)
        if name is None:
            return None
        return self._types.get(name)

    def identity_of(self, descriptor: TypeDescriptor) -> str:
        return descriptor.full_name

    def lookup(self, module: Module, identity: Any) -> Optional[TypeDescriptor]:
        name = canonical_name(identity)
        for t in self._types_by_module.get(module.identity, ()):
            if t.full_name == name:
                return t
        return None

    # ---------- Structure ----------

    @property
    def module_identities(self) -> Tuple[str, ...]:
        return tuple(self._module_order)

    def types_of(self, module: Module) -> Tuple[TypeDescriptor, ...]:
        return self._types_by_module.get(module.identity, ())

    def all_types(self) -> List[TypeDescriptor]:
        return [t for key in self._module_order for t in self._types_by_module[key]]

    def method(self, method_id: MethodId) -> Optional[MethodDescriptor]:
        return self._methods.get(method_id)

    def declaring_type(self, method: MethodDescriptor) -> Optional[TypeDescriptor]:
        return self._types.get(method.id.declaring_type)

    def find_method(
        self,
        type_identity: Any,
        name: str,
        parameters: Optional[Sequence[str]] = None,
        generic_arity: Optional[int] = None,
    ) -> MethodDescriptor:
        """
        Best overload of name on a type.

        Preference: exact parameter signature, then matching generic arity,
        then declaration order.

        Raises:
            NotFoundError: the type is unknown, has no method of that name, or
                no overload matches the given signature
        """
        descriptor = self.descriptor_for(type_identity)
        if descriptor is None:
            raise NotFoundError(f"Type {canonical_name(type_identity)} is not in any loaded module")
        candidates = [m for m in descriptor.methods if m.name == name]
        if not candidates:
            raise NotFoundError(f"{descriptor.full_name} has no method {name}")

        wanted = tuple(parameters) if parameters is not None else None
        if wanted is not None:
            candidates = [m for m in candidates if m.id.parameters == wanted]
            if not candidates:
                raise NotFoundError(
                    f"{descriptor.full_name} has no overload {name}({', '.join(wanted)})"
                )

        def score(m: MethodDescriptor) -> int:
            return 1 if generic_arity is not None and m.generic_arity == generic_arity else 0

        best = max(score(m) for m in candidates)
        return next(m for m in candidates if score(m) == best)

    def interfaces_of(self, descriptor: TypeDescriptor) -> Tuple[TypeDescriptor, ...]:
        """
        Interfaces implemented by a type, directly or transitively (through its
        base types and through interface inheritance). Interfaces that are not
        in any loaded module are left out.
        """
        cached = self._interface_cache.get(descriptor.full_name)
        if cached is not None:
            return cached
        found: Dict[str, TypeDescriptor] = {}
        visited = set()
        pending: List[TypeDescriptor] = [descriptor]
        while pending:
            current = pending.pop(0)
            if current.full_name in visited:
                continue
            visited.add(current.full_name)
            for ref in current.interfaces:
                iface = self._types.get(ref.name)
                if iface is None:
                    logger.debug(f"Interface {ref.name} of {current.full_name} is not loaded")
                    continue
                found.setdefault(iface.full_name, iface)
                pending.append(iface)
            if current.base is not None:
                base = self._types.get(current.base.name)
                if base is not None:
                    pending.append(base)
        result = tuple(found.values())
        self._interface_cache[descriptor.full_name] = result
        return result

    def has_capability(self, descriptor: TypeDescriptor, marker: str) -> bool:
        """True if some transitively implemented interface carries the marker attribute."""
        return any(marker in iface.attributes for iface in self.interfaces_of(descriptor))
