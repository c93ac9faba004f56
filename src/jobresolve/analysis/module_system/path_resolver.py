"""
Module Path Resolution

Finds module files under a set of search paths, by module name or by
name-matching hints.

Rust Pattern: rustc_session::search_paths

This class is stateless apart from its search paths and can be shared/reused.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ...utils.config import MODULE_FILE_EXTENSION
from ...utils.io_utils import is_module_file

logger = logging.getLogger(__name__)


class PathResolver:
    """
    Resolves module names and hints to module files.

    - "Demo" -> <search path>/Demo.jmod (first search path wins)
    - hints ("Demo", "Game") -> every module file whose stem contains a hint
    """

    def __init__(self, search_paths: Iterable[Path] = ()):
        self.search_paths: List[Path] = [Path(p) for p in search_paths]

    def module_files(self) -> List[Path]:
        """Every module file under the search paths, sorted per search path."""
        files: List[Path] = []
        for root in self.search_paths:
            if not root.is_dir():
                logger.debug(f"PathResolver: skipping missing search path {root}")
                continue
            files.extend(sorted(p for p in root.iterdir() if is_module_file(p)))
        return files

    def resolve(self, module_name: str) -> Optional[Path]:
        for root in self.search_paths:
            candidate = root / f"{module_name}{MODULE_FILE_EXTENSION}"
            if candidate.is_file():
                return candidate
        return None

    def select(self, hints: Sequence[str], exclude: bool = False) -> List[Path]:
        """
        Module files matching the hints.

        exclude=False keeps files whose name contains any hint; exclude=True
        keeps files whose name contains none of them.
        """
        selected = []
        for path in self.module_files():
            matched = any(hint in path.stem for hint in hints)
            if matched != exclude:
                selected.append(path)
        return selected
