"""
Centralized file I/O utilities.

- Single place for encoding handling
- Use Path.read_text()/write_text() consistently (no raw open/read)
"""

from pathlib import Path
from typing import Union

from .config import DEFAULT_FILE_ENCODING, MODULE_FILE_EXTENSION, SYMBOL_FILE_EXTENSION


def read_text_file(path: Union[Path, str]) -> str:
    """Read a metadata document with standard encoding."""
    p = Path(path) if not isinstance(path, Path) else path
    return p.read_text(encoding=DEFAULT_FILE_ENCODING)


def write_text_file(path: Union[Path, str], text: str) -> None:
    """Write a metadata document with standard encoding."""
    p = Path(path) if not isinstance(path, Path) else path
    p.write_text(text, encoding=DEFAULT_FILE_ENCODING)


def symbol_path_for(module_path: Union[Path, str]) -> Path:
    """Companion debug-symbol document of a module file."""
    return Path(module_path).with_suffix(SYMBOL_FILE_EXTENSION)


def is_module_file(path: Path) -> bool:
    return path.is_file() and path.suffix == MODULE_FILE_EXTENSION
