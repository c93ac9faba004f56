"""
Metadata Descriptors

Rust Pattern: rustc_middle::ty::AdtDef, rustc_middle::mir::mono::MonoItem

Descriptors are read once from a module and never mutated. A synthesized
type is a new descriptor added to the module, not an edit of an existing one.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .typeref import TypeArg, TypeRef, GenericParam, spell
from ..utils.config import MEMBER_SEPARATOR


@dataclass(frozen=True)
class MethodId:
    """Method identity: declaring type + name + parameter signature."""
    declaring_type: str
    name: str
    parameters: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.declaring_type}{MEMBER_SEPARATOR}{self.name}({', '.join(self.parameters)})"


@dataclass(frozen=True)
class MethodDescriptor:
    id: MethodId
    generic_params: Tuple[str, ...] = ()
    body: Optional[Tuple[Any, ...]] = field(default=None, compare=False)
    module: str = ""

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def generic_arity(self) -> int:
        return len(self.generic_params)

    @property
    def is_generic(self) -> bool:
        return self.generic_arity > 0

    def generic_parameter(self, name: str) -> GenericParam:
        return GenericParam(owner=str(self.id), name=name, is_method=True)

    def __str__(self) -> str:
        return str(self.id)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    field_type: TypeRef


@dataclass(frozen=True)
class TypeDescriptor:
    """
    Type definition as declared in a module.

    Identity is the fully qualified name. A descriptor with generic parameters
    is an open template; closed forms exist only as TypeRef values.
    """
    full_name: str
    generic_params: Tuple[str, ...] = ()
    base: Optional[TypeRef] = None
    interfaces: Tuple[TypeRef, ...] = ()
    attributes: Tuple[str, ...] = ()
    is_interface: bool = False
    methods: Tuple[MethodDescriptor, ...] = ()
    fields: Tuple[FieldDescriptor, ...] = ()
    module: str = ""

    @property
    def generic_arity(self) -> int:
        return len(self.generic_params)

    @property
    def contains_generic_parameters(self) -> bool:
        return self.generic_arity > 0

    def generic_parameter(self, name: str) -> GenericParam:
        return GenericParam(owner=self.full_name, name=name, is_method=False)

    def __str__(self) -> str:
        if self.generic_params:
            return f"{self.full_name}<{', '.join(self.generic_params)}>"
        return self.full_name


# ---------------------------------------------------------------------------
# Analysis records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CallReference:
    """
    One job call site.

    entry_method is where the instruction textually occurs; target is the
    instantiated job type seen there (open parameters belong to entry_method
    or its declaring type); invoked is the spelling of the instruction operand
    that carried the target.
    """
    entry_method: MethodId
    target: TypeRef
    invoked: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (spell(self.target), str(self.entry_method))

    def __str__(self) -> str:
        return f"{spell(self.target)} in {self.entry_method}"


@dataclass(frozen=True)
class CallSite:
    """
    Call-graph edge.

    bindings maps the callee's generic parameters (its own and its declaring
    type's) to the arguments supplied at this site, expressed in the caller's
    context.
    """
    caller: MethodId
    callee: MethodId
    bindings: Tuple[Tuple[GenericParam, TypeArg], ...] = ()

    @property
    def is_generic(self) -> bool:
        return len(self.bindings) > 0

    def binding_map(self) -> Dict[GenericParam, TypeArg]:
        return dict(self.bindings)


@dataclass(frozen=True)
class ResolvedInstantiation:
    """
    Fully concrete instantiation of a generic job type.

    Equality is the deduplication key: (generic entity, concrete arguments).
    """
    generic_entity: str
    type_arguments: Tuple[TypeRef, ...] = ()

    @classmethod
    def from_type_ref(cls, ref: TypeRef) -> "ResolvedInstantiation":
        return cls(generic_entity=ref.name, type_arguments=tuple(ref.args))

    @property
    def type_ref(self) -> TypeRef:
        return TypeRef(self.generic_entity, self.type_arguments)

    def __str__(self) -> str:
        return spell(self.type_ref)
