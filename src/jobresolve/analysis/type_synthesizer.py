"""
Type Synthesizer

Rust Pattern: rustc_monomorphize::partitioning (materializing collected instances)

Injects closed type definitions for resolved instantiations into a target
module so that an ahead-of-time compiler sees a concrete use of each one:

    (type "Generated.JobInstances"
      (field "_instance_Demo_Job_Core_Int32" "Generated.JobInstances/Demo_Job_Core_Int32"))
    (type "Generated.JobInstances/Demo_Job_Core_Int32" (base "Demo.Job<Core.Int32>"))

Output depends only on the set of instantiations: they are sorted by spelling
and a previously synthesized group of the same name is replaced.
"""

import logging
from typing import Iterable, List, Optional, Set, Union

from .module_system.module_info import Module
from .module_system.module_store import ModuleStore
from .type_index import TypeGraphIndex
from ..shared.descriptors import FieldDescriptor, ResolvedInstantiation, TypeDescriptor
from ..shared.errors import SynthesisError
from ..shared.typeref import TypeRef, contains_generic_parameters, mangle, spell
from ..utils.config import NESTED_TYPE_SEPARATOR, SYNTHESIZED_FIELD_PREFIX

logger = logging.getLogger(__name__)

Instantiation = Union[ResolvedInstantiation, TypeRef]


class TypeSynthesizer:
    """
    Builds and persists the closed type group.

    When an index is given, each instantiation is also checked against its
    generic template (known template, matching arity).
    """

    def __init__(self, index: Optional[TypeGraphIndex] = None):
        self.index = index

    def synthesize(self, module: Module, name: str, instantiations: Iterable[Instantiation]) -> TypeDescriptor:
        """
        Replace the group `name` in module with one closed alias per instantiation.

        Raises:
            SynthesisError: empty group name, or an instantiation that is not a
                closed type reference
        """
        if not name:
            raise SynthesisError("Synthesized type group needs a name", module.name)
        refs = self._closed_refs(module, instantiations)

        nested_prefix = name + NESTED_TYPE_SEPARATOR
        removed = module.remove_types(
            lambda t: t.full_name == name or t.full_name.startswith(nested_prefix)
        )
        if removed:
            logger.debug(f"Replaced {removed} previously synthesized types in {module.name}")

        aliases: List[TypeDescriptor] = []
        fields: List[FieldDescriptor] = []
        for ref, member in zip(refs, _member_names(refs)):
            alias = TypeDescriptor(full_name=nested_prefix + member, base=ref, module=module.name)
            aliases.append(alias)
            fields.append(FieldDescriptor(
                name=f"{SYNTHESIZED_FIELD_PREFIX}_{member}",
                field_type=TypeRef(alias.full_name),
            ))
        group = TypeDescriptor(full_name=name, fields=tuple(fields), module=module.name)

        module.add_type(group)
        for alias in aliases:
            module.add_type(alias)
        logger.debug(f"Synthesized {name} with {len(aliases)} closed types in {module.name}")
        return group

    def write(
        self,
        store: ModuleStore,
        module: Module,
        name: str,
        instantiations: Iterable[Instantiation],
    ) -> TypeDescriptor:
        """Synthesize, then persist the module with its debug symbols."""
        group = self.synthesize(module, name, instantiations)
        store.write(module, write_symbols=True)
        return group

    def _closed_refs(self, module: Module, instantiations: Iterable[Instantiation]) -> List[TypeRef]:
        unique = {}
        for item in instantiations:
            if isinstance(item, ResolvedInstantiation):
                ref = item.type_ref
            elif isinstance(item, TypeRef):
                ref = item
            else:
                raise SynthesisError(f"Cannot synthesize a type for {item!r}", module.name)
            if contains_generic_parameters(ref):
                raise SynthesisError(f"Instantiation {spell(ref)} is not closed", module.name)
            self._check_template(module, ref)
            unique.setdefault(spell(ref), ref)
        return [unique[key] for key in sorted(unique)]

    def _check_template(self, module: Module, ref: TypeRef) -> None:
        if self.index is None:
            return
        template = self.index.descriptor_for(ref)
        if template is None:
            raise SynthesisError(f"Unknown generic template {ref.name}", module.name)
        if template.generic_arity != len(ref.args):
            raise SynthesisError(
                f"{spell(ref)} has {len(ref.args)} arguments, {ref.name} expects {template.generic_arity}",
                module.name,
            )


def _member_names(refs: List[TypeRef]) -> List[str]:
    """
    Mangled member name per ref, made unique.

    Mangling folds separators together, so Job<Core.Int32> and Job<Core_Int32>
    share a mangled form. Later refs in spelling order get the first free
    numeric suffix.
    """
    used: Set[str] = set()
    names = []
    for ref in refs:
        base = mangle(ref)
        name = base
        suffix = 2
        while name in used:
            name = f"{base}_{suffix}"
            suffix += 1
        used.add(name)
        names.append(name)
    return names
