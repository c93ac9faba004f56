"""
Shared components: type references, metadata descriptors, errors.

Rust Pattern: Shared foundational types and utilities
"""

from .source_location import SourceLocation, MetadataLocation
from .typeref import (
    GenericParam, TypeRef, TypeArg, Bindings,
    spell, contains_generic_parameters, open_parameters, substitute, nested_type_refs, mangle,
)
from .descriptors import (
    MethodId, MethodDescriptor, FieldDescriptor, TypeDescriptor,
    CallReference, CallSite, ResolvedInstantiation,
)
from .errors import (
    Diagnostic, DiagnosticReporter, format_diagnostic,
    JobResolveError, LoadError, NotFoundError, TypeRefParseError,
    MalformedBodyError, SynthesisError, ResolutionCancelled,
)
from .cancellation import CancellationToken
