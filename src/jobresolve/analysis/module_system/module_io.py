"""
Module Documents (S-Expressions)
================================

Reads and writes module metadata documents. A module file (.jmod) holds one
``(module ...)`` form; its debug symbols live in a companion ``.jsym``
document. Reading goes through sexpdata; writing uses a deterministic pretty
printer so the same module always produces the same bytes (no timestamps).

    (module "Demo"
      (reference "Core")
      (type "Demo.Job" (generic "T") (interfaces "Core.IJob")
        (method "Execute" (body (ret))))
      (type "Demo.Scheduler"
        (method "Run" (generic "U")
          (body (newobj "Demo.Job<!!U>") (ret)))))

Method bodies are kept as raw instruction forms; they are decoded only when
scanned, so an undecodable body does not prevent loading its module.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import sexpdata

from .module_info import Module
from ...frontend.forms import form_head, is_quoted_string, symbol_name
from ...frontend.typeref_parser import GenericContext, parse_named_type_ref
from ...shared.descriptors import FieldDescriptor, MethodDescriptor, MethodId, TypeDescriptor
from ...shared.errors import LoadError, TypeRefParseError
from ...shared.source_location import SourceLocation
from ...shared.typeref import spell
from ...utils.config import MAX_LINE_LENGTH
from ...utils.io_utils import read_text_file, symbol_path_for, write_text_file

logger = logging.getLogger(__name__)


def _parse(text: str) -> Any:
    # `t` and `nil` stay symbols so any body is written back unchanged
    return sexpdata.loads(text, nil=None, true=None)


def _string(value: Any, what: str) -> str:
    if is_quoted_string(value):
        return value
    raise ValueError(f"expected a quoted string for {what}, got {value!r}")


def _strings(values: List[Any], what: str) -> Tuple[str, ...]:
    return tuple(_string(v, what) for v in values)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def read_module(path: Path) -> Module:
    """
    Read a module document and its companion symbol document.

    Raises:
        LoadError: file missing/unreadable or not a valid module document
    """
    path = Path(path)
    try:
        text = read_text_file(path)
    except OSError as e:
        raise LoadError(f"Cannot open module {path}: {e}", path) from e
    try:
        module = loads_module(text, path)
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(f"Cannot parse module {path}: {e}", path) from e
    sym_path = symbol_path_for(path)
    if sym_path.exists():
        try:
            module.symbols = loads_symbols(read_text_file(sym_path))
        except Exception as e:
            raise LoadError(f"Cannot parse symbols {sym_path}: {e}", sym_path) from e
    logger.debug(f"Loaded module {module.name}: {len(module.types)} types, {len(module.symbols)} symbols")
    return module


def loads_module(text: str, path: Optional[Path] = None) -> Module:
    form = _parse(text)
    if form_head(form) != "module" or len(form) < 2:
        raise LoadError("Not a module document: expected (module \"Name\" ...)", path)
    name = _string(form[1], "module name")
    module = Module(name=name, path=path)
    for clause in form[2:]:
        head = form_head(clause)
        if head == "reference":
            module.references.extend(_strings(clause[1:], "reference"))
        elif head == "type":
            module.types.append(_read_type(clause, name))
        else:
            raise LoadError(f"Unknown module clause {clause!r}", path)
    return module


def _read_type(form: List[Any], module_name: str) -> TypeDescriptor:
    full_name = _string(form[1], "type name")
    clauses = form[2:]
    generic_params: Tuple[str, ...] = ()
    for clause in clauses:
        if form_head(clause) == "generic":
            generic_params = _strings(clause[1:], "generic parameter")
    context = GenericContext(type_name=full_name, type_params=generic_params)

    base = None
    interfaces: List[Any] = []
    attributes: Tuple[str, ...] = ()
    is_interface = False
    methods: List[MethodDescriptor] = []
    fields: List[FieldDescriptor] = []
    try:
        for clause in clauses:
            head = form_head(clause)
            if head == "generic":
                continue
            elif head == "base":
                base = parse_named_type_ref(_string(clause[1], "base type"), context)
            elif head == "interfaces":
                interfaces.extend(parse_named_type_ref(s, context) for s in _strings(clause[1:], "interface"))
            elif head == "attributes":
                attributes = _strings(clause[1:], "attribute")
            elif head == "interface":
                is_interface = True
            elif head == "field":
                fields.append(FieldDescriptor(
                    name=_string(clause[1], "field name"),
                    field_type=parse_named_type_ref(_string(clause[2], "field type"), context),
                ))
            elif head == "method":
                methods.append(_read_method(clause, full_name, module_name))
            else:
                raise ValueError(f"unknown type clause {clause!r}")
    except TypeRefParseError as e:
        raise LoadError(f"Invalid type reference in {full_name}: {e.message}") from e
    return TypeDescriptor(
        full_name=full_name,
        generic_params=generic_params,
        base=base,
        interfaces=tuple(interfaces),
        attributes=attributes,
        is_interface=is_interface,
        methods=tuple(methods),
        fields=tuple(fields),
        module=module_name,
    )


def _read_method(form: List[Any], declaring_type: str, module_name: str) -> MethodDescriptor:
    name = _string(form[1], "method name")
    generic_params: Tuple[str, ...] = ()
    parameters: Tuple[str, ...] = ()
    body = None
    for clause in form[2:]:
        head = form_head(clause)
        if head == "generic":
            generic_params = _strings(clause[1:], "generic parameter")
        elif head == "params":
            parameters = _strings(clause[1:], "parameter")
        elif head == "body":
            body = tuple(clause[1:])
        else:
            raise ValueError(f"unknown method clause {clause!r}")
    return MethodDescriptor(
        id=MethodId(declaring_type, name, parameters),
        generic_params=generic_params,
        body=body,
        module=module_name,
    )


def loads_symbols(text: str) -> Dict[str, SourceLocation]:
    form = _parse(text)
    if form_head(form) != "symbols":
        raise ValueError("expected (symbols ...)")
    symbols: Dict[str, SourceLocation] = {}
    for entry in form[1:]:
        if form_head(entry) != "member":
            raise ValueError(f"unknown symbol entry {entry!r}")
        column = entry[4] if len(entry) > 4 else 0
        symbols[_string(entry[1], "member")] = SourceLocation(
            file=_string(entry[2], "source file"), line=int(entry[3]), column=int(column)
        )
    return symbols


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _sym(name: str) -> Any:
    return sexpdata.Symbol(name)


def module_to_sexpr(module: Module) -> List[Any]:
    out: List[Any] = [_sym("module"), module.name]
    if module.references:
        out.append([_sym("reference")] + list(module.references))
    for t in module.types:
        out.append(type_to_sexpr(t))
    return out


def type_to_sexpr(t: TypeDescriptor) -> List[Any]:
    out: List[Any] = [_sym("type"), t.full_name]
    if t.generic_params:
        out.append([_sym("generic")] + list(t.generic_params))
    if t.is_interface:
        out.append([_sym("interface")])
    if t.base is not None:
        out.append([_sym("base"), spell(t.base)])
    if t.interfaces:
        out.append([_sym("interfaces")] + [spell(i) for i in t.interfaces])
    if t.attributes:
        out.append([_sym("attributes")] + list(t.attributes))
    for f in t.fields:
        out.append([_sym("field"), f.name, spell(f.field_type)])
    for m in t.methods:
        out.append(method_to_sexpr(m))
    return out


def method_to_sexpr(m: MethodDescriptor) -> List[Any]:
    out: List[Any] = [_sym("method"), m.name]
    if m.generic_params:
        out.append([_sym("generic")] + list(m.generic_params))
    if m.id.parameters:
        out.append([_sym("params")] + list(m.id.parameters))
    if m.body is not None:
        out.append([_sym("body")] + list(m.body))
    return out


def symbols_to_sexpr(symbols: Dict[str, SourceLocation]) -> List[Any]:
    out: List[Any] = [_sym("symbols")]
    for member in sorted(symbols):
        loc = symbols[member]
        out.append([_sym("member"), member, loc.file, loc.line, loc.column])
    return out


def _pretty_dumps(sexpr: Any, indent: int = 0, indent_str: str = "  ", max_line: int = MAX_LINE_LENGTH) -> str:
    """
    Pretty-print structured sexpr. Keeps short forms on one line; breaks only when needed.
    """
    if sexpr is None:
        return "()"
    if isinstance(sexpr, bool):
        raise ValueError("booleans are not part of the module format")
    if isinstance(sexpr, (int, float)):
        return str(sexpr)
    # Check Symbol before str (sexpdata.Symbol subclasses str)
    name = symbol_name(sexpr)
    if name is not None:
        return name
    if isinstance(sexpr, str):
        escaped = sexpr.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(sexpr, (list, tuple)):
        if not sexpr:
            return "()"
        parts = [_pretty_dumps(e, indent + 1, indent_str, max_line) for e in sexpr]
        one_line = "(" + " ".join(parts) + ")"
        if len(one_line) + len(indent_str) * indent <= max_line and "\n" not in one_line:
            return one_line
        next_prefix = indent_str * (indent + 1)
        # Head and first operand stay on the opening line
        head_count = 2 if len(parts) > 1 and "\n" not in parts[1] else 1
        head = " ".join(parts[:head_count])
        rest = "\n".join(next_prefix + p for p in parts[head_count:])
        return f"({head}" + ("\n" + rest if rest else "") + ")"
    raise ValueError(f"cannot serialize {sexpr!r}")


def dumps_module(module: Module) -> str:
    return _pretty_dumps(module_to_sexpr(module)) + "\n"


def dumps_symbols(symbols: Dict[str, SourceLocation]) -> str:
    return _pretty_dumps(symbols_to_sexpr(symbols)) + "\n"


def write_module(module: Module, path: Optional[Path] = None, write_symbols: bool = True) -> Path:
    """
    Persist module (and, with write_symbols, its debug symbols).

    Raises:
        OSError: the file system rejected the write
        ValueError: a body form cannot be serialized
    """
    target = Path(path) if path is not None else module.path
    if target is None:
        raise ValueError(f"Module {module.name} has no path to write to")
    text = dumps_module(module)
    write_text_file(target, text)
    if write_symbols:
        write_text_file(symbol_path_for(target), dumps_symbols(module.symbols))
    logger.debug(f"Wrote module {module.name} to {target}")
    return target
