"""
Call Site Scanner

Rust Pattern: rustc_monomorphize::collector (mono item collection)

Walks every method body of every type and extracts:

- call references: instructions whose instantiated type is a job
  implementation that still contains open generic parameters. This is exactly
  what an ahead-of-time compiler cannot process on its own.
- call sites: call-graph edges with the generic arguments each call supplies,
  used later to trace open parameters back to concrete types.

Scanning only reads the index and module bodies, so modules can be scanned in
parallel; results are merged in module order, which keeps the output
independent of scheduling.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .module_system.module_info import Module
from .type_index import TypeGraphIndex
from ..frontend.instructions import Instruction, decode_instruction
from ..frontend.typeref_parser import GenericContext
from ..shared.cancellation import CancellationToken
from ..shared.descriptors import (
    CallReference, CallSite, MethodDescriptor, MethodId, TypeDescriptor,
)
from ..shared.errors import (
    Diagnostic, DiagnosticReporter, MalformedBodyError, NotFoundError, SCAN_SKIP,
)
from ..shared.source_location import MetadataLocation
from ..shared.typeref import TypeArg, TypeRef, contains_generic_parameters, nested_type_refs, spell
from ..utils.config import DEFAULT_PRODUCER_MARKER, MEMBER_SEPARATOR

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Capability predicate
# ---------------------------------------------------------------------------

def is_job_implementation(descriptor: TypeDescriptor, index: TypeGraphIndex, marker: str) -> bool:
    """
    A type is a job implementation iff it is not an interface and at least one
    interface it implements (directly or transitively) carries the marker.
    """
    return not descriptor.is_interface and index.has_capability(descriptor, marker)


def is_generic_job_call(ref: Optional[TypeArg], index: TypeGraphIndex, marker: str) -> bool:
    """
    An instantiated type reference is of interest iff it names a job
    implementation and still contains unresolved generic parameters.

    A bare generic parameter is never of interest by itself.
    """
    if ref is None or not isinstance(ref, TypeRef):
        return False
    if not contains_generic_parameters(ref):
        return False
    descriptor = index.descriptor_for(ref)
    return descriptor is not None and is_job_implementation(descriptor, index, marker)


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------

@dataclass
class ScanResult:
    calls: List[CallReference] = field(default_factory=list)
    call_sites: List[CallSite] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def extend(self, other: "ScanResult") -> None:
        self.calls.extend(other.calls)
        self.call_sites.extend(other.call_sites)
        self.diagnostics.extend(other.diagnostics)


def dedupe_calls(calls: Iterable[CallReference]) -> List[CallReference]:
    """Keep the first call reference per (instantiated type, entry method)."""
    seen: Dict[Tuple[str, str], CallReference] = {}
    for call in calls:
        seen.setdefault(call.key, call)
    return list(seen.values())


class CallGraph:
    """
    Callee -> call sites map, immutable after construction.

    Identical edges (same caller, callee and bindings) are kept once.
    """

    def __init__(self, call_sites: Iterable[CallSite]):
        grouped: Dict[MethodId, Dict[CallSite, None]] = {}
        for site in call_sites:
            grouped.setdefault(site.callee, {}).setdefault(site)
        self._callers: Dict[MethodId, Tuple[CallSite, ...]] = {
            callee: tuple(sites) for callee, sites in grouped.items()
        }

    def callers_of(self, method_id: MethodId) -> Tuple[CallSite, ...]:
        return self._callers.get(method_id, ())

    def generic_callers_of(self, method_id: MethodId) -> Tuple[CallSite, ...]:
        return tuple(s for s in self.callers_of(method_id) if s.is_generic)

    def as_lookup(self, generic_only: bool = False) -> Dict[MethodId, List[Tuple[CallSite, MethodId]]]:
        """callee -> [(call site, caller)], optionally only calls that supply generic arguments."""
        lookup: Dict[MethodId, List[Tuple[CallSite, MethodId]]] = {}
        for callee, sites in self._callers.items():
            entries = [(s, s.caller) for s in sites if s.is_generic or not generic_only]
            if entries:
                lookup[callee] = entries
        return lookup

    def __len__(self) -> int:
        return sum(len(sites) for sites in self._callers.values())


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

class CallSiteScanner:
    """
    Extracts job call references and call-graph edges from method bodies.

    A body that cannot be decoded is skipped with an S0001 diagnostic; the
    scan continues with the remaining methods.
    """

    def __init__(
        self,
        index: TypeGraphIndex,
        marker: str = DEFAULT_PRODUCER_MARKER,
        reporter: Optional[DiagnosticReporter] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.index = index
        self.marker = marker
        self.reporter = reporter if reporter is not None else DiagnosticReporter()
        self.cancellation = cancellation

    def scan_modules(self, modules: Sequence[Module], workers: Optional[int] = None) -> ScanResult:
        if workers and workers > 1 and len(modules) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(self.scan_module, modules))
        else:
            results = [self.scan_module(m) for m in modules]
        merged = ScanResult()
        for result in results:
            merged.extend(result)
        merged.calls = dedupe_calls(merged.calls)
        self.reporter.extend(merged.diagnostics)
        logger.debug(f"Scanned {len(modules)} modules: {len(merged.calls)} job calls, "
                     f"{len(merged.call_sites)} call sites, {len(merged.diagnostics)} skipped bodies")
        return merged

    def scan_module(self, module: Module) -> ScanResult:
        result = ScanResult()
        for descriptor in self.index.types_of(module):
            if self.cancellation is not None:
                self.cancellation.raise_if_cancelled()
            result.extend(self.scan_type(descriptor))
        result.calls = dedupe_calls(result.calls)
        return result

    def scan_type(self, descriptor: TypeDescriptor) -> ScanResult:
        result = ScanResult()
        for method in descriptor.methods:
            if method.body is None:
                continue
            try:
                instructions = self._decode_body(descriptor, method)
            except MalformedBodyError as e:
                logger.debug(f"Skipping body of {method.id}: {e.message}")
                result.diagnostics.append(Diagnostic(
                    message="method body skipped",
                    location=MetadataLocation(module=method.module, member=str(method.id)),
                    code=SCAN_SKIP,
                    note=e.message,
                ))
                continue
            for instruction in instructions:
                result.calls.extend(self._job_calls(method.id, instruction))
                site = self._call_site(method.id, instruction)
                if site is not None:
                    result.call_sites.append(site)
        return result

    def _decode_body(self, descriptor: TypeDescriptor, method: MethodDescriptor) -> List[Instruction]:
        context = GenericContext(
            type_name=descriptor.full_name,
            type_params=descriptor.generic_params,
            method_id=str(method.id),
            method_params=method.generic_params,
        )
        decoded = []
        for form in method.body:
            instruction = decode_instruction(form, context)
            if instruction is not None:
                decoded.append(instruction)
        return decoded

    def _job_calls(self, entry: MethodId, instruction: Instruction) -> List[CallReference]:
        invoked = f"{spell(instruction.declaring_type)}{MEMBER_SEPARATOR}{instruction.method_name}"
        calls = []
        for candidate in (instruction.declaring_type,) + instruction.type_arguments:
            for ref in nested_type_refs(candidate):
                if is_generic_job_call(ref, self.index, self.marker):
                    calls.append(CallReference(entry_method=entry, target=ref, invoked=invoked))
        return calls

    def _call_site(self, caller: MethodId, instruction: Instruction) -> Optional[CallSite]:
        try:
            callee = self.index.find_method(
                instruction.declaring_type,
                instruction.method_name,
                parameters=instruction.parameters,
                generic_arity=len(instruction.type_arguments),
            )
        except NotFoundError as e:
            logger.debug(f"Call from {caller} not indexed: {e.message}")
            return None

        bindings = []
        declaring = self.index.declaring_type(callee)
        owner_args = instruction.declaring_type.args
        if declaring is not None and declaring.generic_params:
            if len(owner_args) == declaring.generic_arity:
                bindings.extend(
                    (declaring.generic_parameter(name), arg)
                    for name, arg in zip(declaring.generic_params, owner_args)
                )
            else:
                logger.debug(f"Arity mismatch for {spell(instruction.declaring_type)} in {caller}")
        if callee.generic_params:
            if len(instruction.type_arguments) == callee.generic_arity:
                bindings.extend(
                    (callee.generic_parameter(name), arg)
                    for name, arg in zip(callee.generic_params, instruction.type_arguments)
                )
            else:
                logger.debug(f"Arity mismatch for {callee.id} in {caller}")
        return CallSite(caller=caller, callee=callee.id, bindings=tuple(bindings))
