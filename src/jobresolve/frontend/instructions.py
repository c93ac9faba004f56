"""
Instruction Decoding

Method bodies are sequences of instruction forms. Only instructions that
reference a method or a type instantiation matter to the analysis:

    (newobj "Demo.Job<!!U>")
    (newobj "Demo.Job<!!U>" ("System.Int32"))            ; constructor signature
    (call "Demo.Scheduler<!T>" "Run" ("Core.Int32"))      ; method type arguments
    (callvirt "Core.IJob" "Execute" () ("System.Int32"))  ; explicit signature

Every other opcode decodes to None.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .forms import form_head, is_quoted_string
from .typeref_parser import GenericContext, parse_type_ref
from ..shared.errors import MalformedBodyError, TypeRefParseError
from ..shared.typeref import TypeArg, TypeRef
from ..utils.config import CALL_OPCODES, CONSTRUCTOR_NAME, NEWOBJ_OPCODE


@dataclass(frozen=True)
class Instruction:
    """
    Decoded method or constructor reference.

    parameters is None when the instruction does not pin an overload.
    """
    opcode: str
    declaring_type: TypeRef
    method_name: str
    type_arguments: Tuple[TypeArg, ...] = ()
    parameters: Optional[Tuple[str, ...]] = None

    @property
    def is_construction(self) -> bool:
        return self.opcode == NEWOBJ_OPCODE


def _strings(form: Any, what: str) -> Tuple[str, ...]:
    if not isinstance(form, list) or not all(is_quoted_string(v) for v in form):
        raise MalformedBodyError(f"Expected a list of strings for {what}, got {form!r}")
    return tuple(form)


def _type(text: Any, context: GenericContext) -> TypeArg:
    if not is_quoted_string(text):
        raise MalformedBodyError(f"Expected a type spelling, got {text!r}")
    try:
        return parse_type_ref(text, context)
    except TypeRefParseError as e:
        raise MalformedBodyError(e.message) from e


def _declaring_type(text: Any, context: GenericContext) -> TypeRef:
    ref = _type(text, context)
    if not isinstance(ref, TypeRef):
        raise MalformedBodyError(f"Member owner must be a type, got {text!r}")
    return ref


def decode_instruction(form: Any, context: GenericContext) -> Optional[Instruction]:
    """
    Decode one instruction form.

    Raises:
        MalformedBodyError: the form is not an instruction, or its operands cannot be decoded
    """
    opcode = form_head(form)
    if opcode is None:
        raise MalformedBodyError(f"Not an instruction: {form!r}")

    if opcode == NEWOBJ_OPCODE:
        if len(form) not in (2, 3):
            raise MalformedBodyError(f"newobj expects a type and an optional signature: {form!r}")
        parameters = _strings(form[2], "constructor signature") if len(form) == 3 else None
        return Instruction(
            opcode=opcode,
            declaring_type=_declaring_type(form[1], context),
            method_name=CONSTRUCTOR_NAME,
            parameters=parameters,
        )

    if opcode in CALL_OPCODES:
        if len(form) not in (3, 4, 5):
            raise MalformedBodyError(f"{opcode} expects owner, name, type arguments and signature: {form!r}")
        if not is_quoted_string(form[2]):
            raise MalformedBodyError(f"{opcode} expects a method name: {form!r}")
        type_arguments: Tuple[TypeArg, ...] = ()
        if len(form) >= 4:
            type_arguments = tuple(_type(t, context) for t in _strings(form[3], "type arguments"))
        parameters = _strings(form[4], "signature") if len(form) == 5 else None
        return Instruction(
            opcode=opcode,
            declaring_type=_declaring_type(form[1], context),
            method_name=form[2],
            type_arguments=type_arguments,
            parameters=parameters,
        )

    return None
