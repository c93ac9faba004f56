"""
jobresolve utilities package
"""

from .io_utils import read_text_file, write_text_file, symbol_path_for, is_module_file

__all__ = ["read_text_file", "write_text_file", "symbol_path_for", "is_module_file"]
