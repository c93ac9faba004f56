"""
Error Reporting

Rust Pattern: rustc_errors::Diagnostic

Storage-layer failures (loading a required module, writing the target module)
surface as exceptions. Everything below that level is best-effort and is
collected as diagnostics instead of aborting the analysis.
"""

import os
import sys
from dataclasses import dataclass
from typing import List, Optional

from .source_location import MetadataLocation


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get("JOBRESOLVE_COLOR", "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    return sys.stderr.isatty()

_BOLD   = "\033[1m"
_YELLOW = "\033[33m"
_BLUE   = "\033[34m"
_CYAN   = "\033[36m"
_RESET  = "\033[0m"

def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color:
        return text
    prefix = "".join(codes)
    return f"{prefix}{text}{_RESET}" if prefix else text


# Diagnostic codes
SCAN_SKIP = "S0001"
UNRESOLVED_INSTANTIATION = "R0001"
SKIPPED_MODULE = "L0001"


# ---------------------------------------------------------------------------
# Diagnostic dataclass
# ---------------------------------------------------------------------------

@dataclass
class Diagnostic:
    """
    Non-fatal finding of an analysis run.

    Rust Pattern: rustc_errors::Diagnostic (warning level)
    """
    message: str
    location: Optional[MetadataLocation]
    code: Optional[str] = None
    note: Optional[str] = None


def format_diagnostic(diagnostic: Diagnostic, color: bool = False) -> str:
    """
    Render a single diagnostic.

    Example output (plain, no color)::

        warning[S0001]: method body skipped
         --> Demo[Demo.Scheduler::Run()]
          = note: unknown generic parameter '!!V'
    """
    out: List[str] = []
    code_str = f"[{diagnostic.code}]" if diagnostic.code else ""
    out.append(
        _style(f"warning{code_str}", _BOLD, _YELLOW, color=color)
        + _style(f": {diagnostic.message}", _BOLD, color=color)
    )
    where = str(diagnostic.location) if diagnostic.location else "<unknown location>"
    out.append(_style(" --> ", _BOLD, _BLUE, color=color) + where)
    if diagnostic.note:
        out.append(
            _style("  = ", _BOLD, _CYAN, color=color)
            + _style("note: ", _BOLD, color=color)
            + diagnostic.note
        )
    return "\n".join(out)


# ---------------------------------------------------------------------------
# DiagnosticReporter
# ---------------------------------------------------------------------------

class DiagnosticReporter:
    """
    Collects diagnostics for one resolution request.

    Rust Pattern: rustc_errors::Emitter
    """

    def __init__(self) -> None:
        self.diagnostics: List[Diagnostic] = []

    def report(
        self,
        message: str,
        location: Optional[MetadataLocation],
        code: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(message=message, location=location, code=code, note=note)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: List[Diagnostic]) -> None:
        self.diagnostics.extend(diagnostics)

    def with_code(self, code: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]

    def has_diagnostics(self) -> bool:
        return len(self.diagnostics) > 0

    def format_all(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return "\n\n".join(format_diagnostic(d, color=use_color) for d in self.diagnostics)

    def print_diagnostics(self) -> None:
        color = _use_color()
        for diagnostic in self.diagnostics:
            print(format_diagnostic(diagnostic, color=color), file=sys.stderr)


# ============================================================================
# Exception Classes
# ============================================================================

class JobResolveError(Exception):
    """Base exception for all jobresolve errors"""
    def __init__(self, message: str, location: Optional[object] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self):
        if self.location:
            return f"{self.message}\n --> {self.location}"
        return self.message


class LoadError(JobResolveError):
    """A requested module cannot be opened or parsed."""


class NotFoundError(JobResolveError):
    """A type or method lookup found no match."""


class TypeRefParseError(JobResolveError):
    """A type spelling cannot be parsed, or names a generic parameter that is not in scope."""


class MalformedBodyError(JobResolveError):
    """An instruction in a method body cannot be decoded."""


class SynthesisError(JobResolveError):
    """Writing closed type definitions into the target module failed."""


class ResolutionCancelled(JobResolveError):
    """The resolution request was cancelled."""
