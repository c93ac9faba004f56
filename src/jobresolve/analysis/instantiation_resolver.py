"""
Instantiation Resolver

Rust Pattern: rustc_monomorphize::collector (transitive instance collection)

A job call reference found inside generic code names its job type through
parameters of the enclosing method (or of the enclosing type). The concrete
arguments are only known where that method is called, possibly several call
levels up. The resolver walks the call graph from each reference towards its
callers, substituting the arguments each call site supplies, until every
branch is either closed or ends.

Walk state: (target, context method, path)
- target closed                        -> emit ResolvedInstantiation
- (context, open params) on the path   -> cycle, branch stops
- (target, context) already expanded   -> skipped
- no callers                           -> dead end, branch stops

A call site whose bindings leave the target unchanged is still followed when
the caller declares every open parameter itself: a method of Box<X> calling
another method of Box<X> passes X through, so the walk continues at the
caller. Otherwise such a site is a dead end.

The path is scoped to one branch. A branch that comes back to a state it is
already expanding stops, which also covers growing recursion such as Run<U>
calling Run<List<U>>: the open parameters are the same, so the key repeats.
Closed results of a state do not depend on the route that reached it, so
each (target, context) is expanded once per call reference and diamonds stay
linear.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .call_scanner import CallGraph
from .type_index import TypeGraphIndex
from ..shared.cancellation import CancellationToken
from ..shared.descriptors import CallReference, MethodId, ResolvedInstantiation
from ..shared.errors import DiagnosticReporter, UNRESOLVED_INSTANTIATION
from ..shared.source_location import MetadataLocation
from ..shared.typeref import (
    GenericParam, TypeRef, contains_generic_parameters, open_parameters, spell, substitute,
)

logger = logging.getLogger(__name__)

WalkKey = Tuple[MethodId, Tuple[GenericParam, ...]]
_WalkState = Tuple[TypeRef, MethodId, FrozenSet[WalkKey]]


class InstantiationResolver:
    """
    Reduces job call references to closed instantiations.

    - resolve(calls): union over all references, de-duplicated, sorted by spelling
    - resolve_call(call): closed instantiations reachable from one reference

    Unresolvable references are dropped; each one is recorded as an R0001
    diagnostic.
    """

    def __init__(
        self,
        index: TypeGraphIndex,
        call_graph: CallGraph,
        reporter: Optional[DiagnosticReporter] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.index = index
        self.call_graph = call_graph
        self.reporter = reporter if reporter is not None else DiagnosticReporter()
        self.cancellation = cancellation

    def resolve(self, calls: Iterable[CallReference]) -> List[ResolvedInstantiation]:
        found: Dict[ResolvedInstantiation, None] = {}
        count = 0
        for call in calls:
            count += 1
            for instance in self.resolve_call(call):
                found.setdefault(instance)
        result = sorted(found, key=str)
        logger.debug(f"Resolved {count} job calls to {len(result)} instantiations")
        return result

    def resolve_call(self, call: CallReference) -> List[ResolvedInstantiation]:
        found: Dict[ResolvedInstantiation, None] = {}
        expanded: Set[Tuple[TypeRef, MethodId]] = set()
        pending: List[_WalkState] = [(call.target, call.entry_method, frozenset())]
        while pending:
            if self.cancellation is not None:
                self.cancellation.raise_if_cancelled()
            target, context, path = pending.pop()

            if not contains_generic_parameters(target):
                found.setdefault(ResolvedInstantiation.from_type_ref(target))
                continue

            parameters = open_parameters(target)
            key: WalkKey = (context, parameters)
            if key in path:
                logger.debug(f"Cycle at {context} for {spell(target)}")
                continue
            if (target, context) in expanded:
                continue
            expanded.add((target, context))

            callers = self.call_graph.callers_of(context)
            if not callers:
                logger.debug(f"No callers of {context} for {spell(target)}")
                continue

            branch_path = path | {key}
            successors: List[_WalkState] = []
            for site in callers:
                substituted = substitute(target, site.binding_map())
                if substituted == target and not _owns_all(site.caller, parameters):
                    logger.debug(f"Call from {site.caller} does not bind {spell(target)}")
                    continue
                successors.append((substituted, site.caller, branch_path))
            # Reversed so callers are expanded in graph order
            pending.extend(reversed(successors))

        if not found:
            logger.debug(f"Dropping {call}: no closed instantiation reachable")
            self.reporter.report(
                "job instantiation could not be resolved",
                MetadataLocation(module=self._module_of(call.entry_method), member=str(call.entry_method)),
                code=UNRESOLVED_INSTANTIATION,
                note=f"{spell(call.target)} is never instantiated with concrete arguments",
            )
        return sorted(found, key=str)

    def _module_of(self, method_id: MethodId) -> str:
        method = self.index.method(method_id)
        return method.module if method is not None else method_id.declaring_type


def _owns_all(method_id: MethodId, parameters: Tuple[GenericParam, ...]) -> bool:
    """True when every parameter is declared by method_id or by its declaring type."""
    return all(
        p.owner == (str(method_id) if p.is_method else method_id.declaring_type)
        for p in parameters
    )
