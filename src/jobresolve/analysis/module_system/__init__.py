"""Module system: module documents, path resolution, module store."""

from .module_info import Module
from .module_io import read_module, write_module, loads_module, dumps_module
from .path_resolver import PathResolver
from .module_store import ModuleStore

__all__ = [
    'Module',
    'read_module',
    'write_module',
    'loads_module',
    'dumps_module',
    'PathResolver',
    'ModuleStore',
]
