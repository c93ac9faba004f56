"""
Source and Metadata Locations

Rust Pattern: rustc_span::Span
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SourceLocation:
    """
    Debug-symbol location of a member (file, line, column).

    Read from a module's companion symbol document and written back unchanged,
    so stack traces keep mapping to the original sources after synthesis.
    """
    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class MetadataLocation:
    """Position inside module metadata: a module and, optionally, one of its members."""
    module: str
    member: Optional[str] = None

    def __str__(self) -> str:
        if self.member:
            return f"{self.module}[{self.member}]"
        return self.module
