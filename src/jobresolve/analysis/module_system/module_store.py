"""
Module Store

Loads module documents, deduplicates them by canonical path, and releases
them on teardown. Every module handed out by a store is released by close(),
which the store's context manager calls on every exit path.

Rust Pattern: rustc_metadata::creader::CStore
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .module_info import Module
from .module_io import read_module, write_module
from .path_resolver import PathResolver
from ...shared.errors import (
    DiagnosticReporter, JobResolveError, LoadError, SynthesisError, SKIPPED_MODULE,
)
from ...shared.source_location import MetadataLocation

logger = logging.getLogger(__name__)


class ModuleStore:
    """
    Owner of all modules taking part in one resolution request.

    - add_module(): load one module file (fatal or skipped on failure)
    - select(): load modules by name-matching hints
    - resolve_additional: also load referenced modules found on the search paths
    - write(): persist a module (failures become SynthesisError)
    - close(): release every held module

    _open_module() and _persist() are the only places that touch storage.
    """

    def __init__(
        self,
        search_paths: Iterable[Path] = (),
        resolve_additional: bool = False,
        reporter: Optional[DiagnosticReporter] = None,
    ):
        self.path_resolver = PathResolver(search_paths)
        self.resolve_additional = resolve_additional
        self.reporter = reporter if reporter is not None else DiagnosticReporter()
        self._modules: Dict[str, Module] = {}
        self.open_count = 0
        self.release_count = 0
        self.closed = False

    def __enter__(self) -> "ModuleStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def modules(self) -> List[Module]:
        """Loaded modules in load order."""
        return list(self._modules.values())

    def get(self, name: str) -> Optional[Module]:
        for module in self._modules.values():
            if module.name == name:
                return module
        return None

    def add_module(self, path: Path, required: bool = True) -> Optional[Module]:
        """
        Load a module file, or return the already loaded one for the same path.

        Raises:
            LoadError: the module cannot be loaded and required is True
        """
        if self.closed:
            raise JobResolveError("Module store is closed")
        canonical = Path(path).resolve()
        key = str(canonical)
        if key in self._modules:
            return self._modules[key]
        try:
            module = self._open_module(canonical)
        except LoadError as e:
            if required:
                raise
            logger.warning(f"Skipping module {canonical}: {e.message}")
            self.reporter.report(
                "module skipped",
                MetadataLocation(module=str(canonical)),
                code=SKIPPED_MODULE,
                note=e.message,
            )
            return None
        self.open_count += 1
        self._modules[key] = module
        if self.resolve_additional:
            self._load_references(module)
        return module

    def select(self, hints: Sequence[str], exclude: bool = False) -> List[Module]:
        """
        Load every module on the search paths matching the hints.

        Individual failures are skipped; if modules were selected but none of
        them loads, the request has no input and LoadError is raised.
        """
        paths = self.path_resolver.select(hints, exclude)
        loaded = []
        for path in paths:
            module = self.add_module(path, required=False)
            if module is not None:
                loaded.append(module)
        if paths and not loaded:
            raise LoadError(f"None of the {len(paths)} selected modules could be loaded")
        logger.debug(f"Selected {len(loaded)} modules for hints {list(hints)} (exclude={exclude})")
        return loaded

    def _load_references(self, module: Module) -> None:
        for reference in module.references:
            if self.get(reference) is not None:
                continue
            path = self.path_resolver.resolve(reference)
            if path is None:
                logger.debug(f"Reference {reference} of {module.name} not found on search paths")
                continue
            self.add_module(path, required=False)

    def write(self, module: Module, write_symbols: bool = True) -> Path:
        """
        Persist a module including its debug symbols.

        Raises:
            SynthesisError: the module cannot be written
        """
        try:
            return self._persist(module, write_symbols)
        except (OSError, ValueError) as e:
            raise SynthesisError(f"Cannot write module {module.name}: {e}", module.path) from e

    def release(self, module: Module) -> None:
        if module.released:
            return
        module.release()
        self.release_count += 1
        for key, held in list(self._modules.items()):
            if held is module:
                del self._modules[key]

    def close(self) -> None:
        """Release every held module. Safe to call more than once."""
        for module in list(self._modules.values()):
            self.release(module)
        self._modules.clear()
        if not self.closed:
            logger.debug(f"Module store closed: {self.open_count} opened, {self.release_count} released")
        self.closed = True

    # ---------- Storage seams ----------

    def _open_module(self, path: Path) -> Module:
        return read_module(path)

    def _persist(self, module: Module, write_symbols: bool) -> Path:
        return write_module(module, write_symbols=write_symbols)
