"""
Configuration constants to replace magic values throughout jobresolve
"""

import os
import tempfile

# Module storage constants
MODULE_FILE_EXTENSION = ".jmod"
SYMBOL_FILE_EXTENSION = ".jsym"
DEFAULT_FILE_ENCODING = "utf-8"

# Capability marker: attribute carried by the interfaces of ahead-of-time compilable jobs
DEFAULT_PRODUCER_MARKER = "Unity.Jobs.LowLevel.Unsafe.JobProducerTypeAttribute"

# Parser configuration (cache under temp dir to avoid cluttering project root)
DEFAULT_PARSER_CACHE_FILE = os.path.join(tempfile.gettempdir(), "jobresolve_typeref.cache")
TYPEREF_CACHE_SIZE = 4096

# Metadata naming constants
MEMBER_SEPARATOR = "::"
NESTED_TYPE_SEPARATOR = "/"
CONSTRUCTOR_NAME = ".ctor"

# Opcodes that reference a method or type instantiation
CALL_OPCODES = ("call", "callvirt", "ldftn")
NEWOBJ_OPCODE = "newobj"

# Synthesized output
SYNTHESIZED_FIELD_PREFIX = "_instance"

# Pretty printer
MAX_LINE_LENGTH = 100

# Default name of the synthesized type group
DEFAULT_GROUP_NAME = "Generated.JobInstances"
