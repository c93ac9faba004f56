"""
Resolution Driver

Rust Pattern: rustc_driver::driver

Orchestrates one resolution request:

    ModuleStore -> TypeGraphIndex -> CallSiteScanner -> InstantiationResolver -> TypeSynthesizer

Nothing is shared between requests: every request builds its own store,
index and call graph. Modules are owned by the store, and the store is
released on every exit path of a request.
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..analysis.call_scanner import CallGraph, CallSiteScanner, ScanResult
from ..analysis.instantiation_resolver import InstantiationResolver
from ..analysis.module_system import Module, ModuleStore
from ..analysis.type_index import TypeGraphIndex
from ..analysis.type_synthesizer import Instantiation, TypeSynthesizer
from ..shared.cancellation import CancellationToken
from ..shared.descriptors import (
    CallReference, CallSite, MethodDescriptor, MethodId, ResolvedInstantiation, TypeDescriptor,
)
from ..shared.errors import Diagnostic, DiagnosticReporter
from ..utils.config import DEFAULT_GROUP_NAME, DEFAULT_PRODUCER_MARKER

logger = logging.getLogger(__name__)


class GenericJobResolver:
    """
    Finds generic job instantiations in a set of modules and closes them.

    - get_generic_job_calls(): job call references with open parameters
    - get_generic_method_lookup() / get_method_lookup(): lookup tables
    - resolve_generic_jobs(): closed instantiations, sorted by spelling
    - add_types(): synthesize the closed types into a target module

    The resolver owns its store; use it as a context manager (or call close())
    to release the loaded modules.
    """

    def __init__(
        self,
        store: ModuleStore,
        marker: str = DEFAULT_PRODUCER_MARKER,
        workers: Optional[int] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.store = store
        self.marker = marker
        self.workers = workers
        self.cancellation = cancellation
        self._index: Optional[TypeGraphIndex] = None
        self._scan: Optional[ScanResult] = None
        self._call_graph: Optional[CallGraph] = None

    @classmethod
    def from_hints(
        cls,
        hints: Sequence[str],
        search_paths: Sequence[Path],
        exclude: bool = False,
        resolve_additional: bool = False,
        **options: Any,
    ) -> "GenericJobResolver":
        """Load every module on search_paths whose name matches (or, with exclude, avoids) the hints."""
        store = ModuleStore(search_paths, resolve_additional=resolve_additional)
        with ExitStack() as stack:
            stack.enter_context(store)
            store.select(hints, exclude)
            resolver = cls(store, **options)
            stack.pop_all()
        return resolver

    @classmethod
    def from_path(
        cls,
        path: Path,
        search_paths: Sequence[Path] = (),
        resolve_additional: bool = False,
        **options: Any,
    ) -> "GenericJobResolver":
        """Load a single module; failing to load it is fatal."""
        store = ModuleStore(search_paths, resolve_additional=resolve_additional)
        with ExitStack() as stack:
            stack.enter_context(store)
            store.add_module(path, required=True)
            resolver = cls(store, **options)
            stack.pop_all()
        return resolver

    def __enter__(self) -> "GenericJobResolver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.store.close()

    # ---------- Analysis ----------

    @property
    def reporter(self) -> DiagnosticReporter:
        return self.store.reporter

    @property
    def modules(self) -> List[Module]:
        return self.store.modules

    @property
    def index(self) -> TypeGraphIndex:
        if self._index is None:
            self._index = TypeGraphIndex(self.modules)
        return self._index

    def _scan_result(self) -> ScanResult:
        if self._scan is None:
            scanner = CallSiteScanner(
                self.index, self.marker, reporter=self.reporter, cancellation=self.cancellation
            )
            self._scan = scanner.scan_modules(self.modules, workers=self.workers)
        return self._scan

    @property
    def call_graph(self) -> CallGraph:
        if self._call_graph is None:
            self._call_graph = CallGraph(self._scan_result().call_sites)
        return self._call_graph

    def get_generic_job_calls(self) -> List[CallReference]:
        return list(self._scan_result().calls)

    def get_generic_method_lookup(self) -> Dict[MethodId, List[Tuple[CallSite, MethodId]]]:
        """callee -> [(call site, caller)] for calls that supply generic arguments."""
        return self.call_graph.as_lookup(generic_only=True)

    def get_method_lookup(self) -> Dict[MethodId, MethodDescriptor]:
        """Every method definition in the loaded modules, keyed by identity."""
        lookup: Dict[MethodId, MethodDescriptor] = {}
        for t in self.index.all_types():
            for m in t.methods:
                lookup.setdefault(m.id, m)
        return lookup

    def get_method_definition(
        self,
        identity: Any,
        name: str,
        parameters: Optional[Sequence[str]] = None,
    ) -> MethodDescriptor:
        """Raises NotFoundError when the type or method is unknown."""
        return self.index.find_method(identity, name, parameters=parameters)

    def resolve_generic_jobs(self) -> List[ResolvedInstantiation]:
        resolver = InstantiationResolver(
            self.index, self.call_graph, reporter=self.reporter, cancellation=self.cancellation
        )
        return resolver.resolve(self.get_generic_job_calls())

    # ---------- Synthesis ----------

    def add_types(self, path: Path, name: str, instantiations: Sequence[Instantiation]) -> TypeDescriptor:
        """
        Add closed types for instantiations to the module at path and persist it.

        Raises:
            LoadError: the target module cannot be loaded
            SynthesisError: the types cannot be synthesized or written
        """
        module = self.store.add_module(path, required=True)
        return TypeSynthesizer(self.index).write(self.store, module, name, instantiations)


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass
class ResolutionRequest:
    """
    Input of one resolution run.

    Modules come from explicit paths (required) and/or name hints (best
    effort). With target_path set, closed types are written into that module
    under group_name.
    """
    paths: Sequence[Path] = ()
    hints: Sequence[str] = ()
    exclude: bool = False
    search_paths: Sequence[Path] = ()
    resolve_additional: bool = False
    target_path: Optional[Path] = None
    group_name: str = DEFAULT_GROUP_NAME
    marker: str = DEFAULT_PRODUCER_MARKER
    workers: Optional[int] = None
    cancellation: Optional[CancellationToken] = None


class ResolutionResult:
    """Resolution result"""
    def __init__(
        self,
        instantiations: Optional[List[ResolvedInstantiation]] = None,
        synthesized: Optional[TypeDescriptor] = None,
        diagnostics: Optional[List[Diagnostic]] = None,
    ):
        self.instantiations = instantiations if instantiations is not None else []
        self.synthesized = synthesized
        self.diagnostics = diagnostics if diagnostics is not None else []

    def has_diagnostics(self) -> bool:
        return len(self.diagnostics) > 0

    def diagnostics_with_code(self, code: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]


def resolve(request: ResolutionRequest) -> ResolutionResult:
    """
    Run one resolution request end to end.

    Every module opened for the request is released before this returns or
    raises. Load failures of explicit paths and synthesis failures propagate;
    everything else ends up in the result's diagnostics.
    """
    reporter = DiagnosticReporter()
    with ModuleStore(request.search_paths, request.resolve_additional, reporter) as store:
        for path in request.paths:
            store.add_module(path, required=True)
        if request.hints or request.exclude:
            store.select(request.hints, request.exclude)

        resolver = GenericJobResolver(
            store,
            marker=request.marker,
            workers=request.workers,
            cancellation=request.cancellation,
        )
        instantiations = resolver.resolve_generic_jobs()

        synthesized = None
        if request.target_path is not None:
            if instantiations:
                synthesized = resolver.add_types(request.target_path, request.group_name, instantiations)
            else:
                logger.info(f"No instantiations to add to {request.target_path}")
    logger.debug(f"Resolution finished: {len(instantiations)} instantiations, "
                 f"{len(reporter.diagnostics)} diagnostics")
    return ResolutionResult(instantiations, synthesized, list(reporter.diagnostics))
