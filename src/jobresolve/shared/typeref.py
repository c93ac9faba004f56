"""
Type References

Rust Pattern: rustc_middle::ty::GenericArg, rustc_middle::ty::subst

A type reference names a type template plus its generic arguments. Arguments
are either further type references or open generic parameters. References are
immutable: substituting concrete arguments yields a new reference, never a
mutation of the generic template.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple, Union


@dataclass(frozen=True)
class GenericParam:
    """
    Open generic parameter.

    owner is the identity of the declaring method (is_method=True) or of the
    declaring type. Two parameters with the same name but different owners
    are distinct.
    """
    owner: str
    name: str
    is_method: bool = False

    def __str__(self) -> str:
        return ("!!" if self.is_method else "!") + self.name


@dataclass(frozen=True)
class TypeRef:
    """Reference to a type, instantiated with args when the template is generic."""
    name: str
    args: Tuple["TypeArg", ...] = ()

    def __str__(self) -> str:
        return spell(self)


TypeArg = Union[TypeRef, GenericParam]
Bindings = Mapping[GenericParam, TypeArg]


def spell(arg: TypeArg) -> str:
    """Canonical spelling, e.g. ``Demo.Job<Core.Int32>`` or ``Demo.Job<!!U>``."""
    if isinstance(arg, GenericParam):
        return str(arg)
    if not arg.args:
        return arg.name
    return f"{arg.name}<{', '.join(spell(a) for a in arg.args)}>"


def contains_generic_parameters(arg: TypeArg) -> bool:
    if isinstance(arg, GenericParam):
        return True
    return any(contains_generic_parameters(a) for a in arg.args)


def open_parameters(arg: TypeArg) -> Tuple[GenericParam, ...]:
    """Open parameters of arg in first-occurrence order, without duplicates."""
    found: Dict[GenericParam, None] = {}
    _collect_parameters(arg, found)
    return tuple(found)


def _collect_parameters(arg: TypeArg, found: Dict[GenericParam, None]) -> None:
    if isinstance(arg, GenericParam):
        found.setdefault(arg)
        return
    for a in arg.args:
        _collect_parameters(a, found)


def substitute(arg: TypeArg, bindings: Bindings) -> TypeArg:
    """Replace every bound parameter; unbound parameters stay open."""
    if isinstance(arg, GenericParam):
        return bindings.get(arg, arg)
    if not arg.args:
        return arg
    return TypeRef(arg.name, tuple(substitute(a, bindings) for a in arg.args))


def nested_type_refs(arg: TypeArg) -> List[TypeRef]:
    """arg itself followed by every type reference nested in its arguments."""
    if isinstance(arg, GenericParam):
        return []
    out = [arg]
    for a in arg.args:
        out.extend(nested_type_refs(a))
    return out


def mangle(arg: TypeArg) -> str:
    """Identifier-safe form of a spelling, used for synthesized member names."""
    text = spell(arg)
    for old, new in (("<", "_"), (">", ""), (", ", "_"), (",", "_"), (".", "_"), ("/", "_"), ("`", "_"), ("!", "")):
        text = text.replace(old, new)
    return text
