"""
Type Spelling Parser

Rust Pattern: rustc_parse (type paths only)

Spellings are parsed once into TypeRef trees whose generic parameters are
unbound (no owner). bind() attaches owners from the method or type in which
the spelling occurs, so the same text in two methods yields distinct
parameters.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from lark import Lark, Transformer
from lark.exceptions import LarkError

from ..shared.errors import TypeRefParseError
from ..shared.typeref import GenericParam, TypeArg, TypeRef
from ..utils.config import DEFAULT_PARSER_CACHE_FILE, TYPEREF_CACHE_SIZE

logger = logging.getLogger("jobresolve.frontend.typeref_parser")


class _TypeRefTransformer(Transformer):
    def start(self, children):
        return children[0]

    def named(self, children):
        args = children[1] if len(children) > 1 else ()
        return TypeRef(str(children[0]), tuple(args))

    def type_args(self, children):
        return tuple(children)

    def method_param(self, children):
        return GenericParam(owner="", name=str(children[0])[2:], is_method=True)

    def type_param(self, children):
        return GenericParam(owner="", name=str(children[0])[1:], is_method=False)


class TypeRefParser:
    """
    Parser for type spellings.

    Uses a Lark LALR parser with Lark's native grammar cache.
    """

    def __init__(self, cache_file: str = DEFAULT_PARSER_CACHE_FILE):
        grammar_path = Path(__file__).parent / "typeref.lark"
        self.parser = Lark.open(
            str(grammar_path),
            start="start",
            parser="lalr",
            cache=cache_file,
            maybe_placeholders=False,
        )
        self.transformer = _TypeRefTransformer()

    def parse(self, text: str) -> TypeArg:
        try:
            tree = self.parser.parse(text)
        except LarkError as e:
            raise TypeRefParseError(f"Invalid type spelling {text!r}: {e}") from e
        return self.transformer.transform(tree)


_default_parser: Optional[TypeRefParser] = None


def _parser() -> TypeRefParser:
    global _default_parser
    if _default_parser is None:
        _default_parser = TypeRefParser()
    return _default_parser


@lru_cache(maxsize=TYPEREF_CACHE_SIZE)
def parse_spelling(text: str) -> TypeArg:
    """Parse a spelling to an unbound TypeRef/GenericParam (cached; results are immutable)."""
    if not isinstance(text, str):
        raise TypeRefParseError(f"Type spelling must be a string, got {type(text).__name__}")
    return _parser().parse(text)


@dataclass(frozen=True)
class GenericContext:
    """Generic parameters in scope where a spelling occurs."""
    type_name: str = ""
    type_params: Tuple[str, ...] = ()
    method_id: Optional[str] = None
    method_params: Tuple[str, ...] = ()


def bind(arg: TypeArg, context: GenericContext) -> TypeArg:
    """Attach owners to the generic parameters of arg."""
    if isinstance(arg, GenericParam):
        if arg.is_method:
            if context.method_id is None:
                raise TypeRefParseError(f"Method generic parameter {arg} outside of a method")
            name = _parameter_name(arg, context.method_params)
            return GenericParam(owner=context.method_id, name=name, is_method=True)
        name = _parameter_name(arg, context.type_params)
        return GenericParam(owner=context.type_name, name=name, is_method=False)
    if not arg.args:
        return arg
    return TypeRef(arg.name, tuple(bind(a, context) for a in arg.args))


def _parameter_name(arg: GenericParam, names: Tuple[str, ...]) -> str:
    if arg.name in names:
        return arg.name
    # Positional form: !!0 is the first method parameter
    if arg.name.isdigit() and int(arg.name) < len(names):
        return names[int(arg.name)]
    raise TypeRefParseError(f"Unknown generic parameter {arg}")


def parse_type_ref(text: str, context: Optional[GenericContext] = None) -> TypeArg:
    return bind(parse_spelling(text), context or GenericContext())


def parse_named_type_ref(text: str, context: Optional[GenericContext] = None) -> TypeRef:
    """Parse a spelling that must name a type, not a bare generic parameter."""
    arg = parse_type_ref(text, context)
    if not isinstance(arg, TypeRef):
        raise TypeRefParseError(f"Expected a type, got generic parameter {text!r}")
    return arg
