"""
Module Types

A module is an opaque handle to one compiled binary's metadata: its type
definitions, the names of the modules it references, and its debug symbols.
Owned by ModuleStore; mutated only by the type synthesizer.

Rust Pattern: rustc_metadata::creader::CrateMetadata
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ...shared.descriptors import TypeDescriptor
from ...shared.source_location import SourceLocation


@dataclass
class Module:
    """
    Information about a loaded module.

    - name: module name as declared in the document
    - path: file the module was read from (None for in-memory modules)
    - types: type definitions in declaration order
    - references: names of referenced modules
    - symbols: member identity -> source location (debug symbols)
    """
    name: str
    path: Optional[Path]
    types: List[TypeDescriptor] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    symbols: Dict[str, SourceLocation] = field(default_factory=dict)
    released: bool = False

    @property
    def identity(self) -> str:
        """Canonical identity: resolved path when file-backed, else the name."""
        if self.path is not None:
            return str(self.path.resolve())
        return self.name

    def get_type(self, full_name: str) -> Optional[TypeDescriptor]:
        for t in self.types:
            if t.full_name == full_name:
                return t
        return None

    def add_type(self, descriptor: TypeDescriptor) -> None:
        self.types.append(descriptor)

    def remove_types(self, predicate: Callable[[TypeDescriptor], bool]) -> int:
        kept = [t for t in self.types if not predicate(t)]
        removed = len(self.types) - len(kept)
        self.types = kept
        return removed

    def release(self) -> None:
        self.types = []
        self.symbols = {}
        self.released = True

    def __str__(self) -> str:
        return f"Module({self.name}, {len(self.types)} types)"

    def __repr__(self) -> str:
        return (f"Module(name={self.name!r}, path={self.path}, "
                f"types={[t.full_name for t in self.types]}, "
                f"references={self.references})")
