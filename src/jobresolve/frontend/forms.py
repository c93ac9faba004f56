"""
S-expression form helpers shared by the module reader and the instruction decoder.
"""

from typing import Any, Optional

import sexpdata


def symbol_name(form: Any) -> Optional[str]:
    """Name of a bare symbol, or None for anything else (strings, numbers, lists)."""
    if isinstance(form, sexpdata.Symbol):
        return form.value() if hasattr(form, "value") else str(form)
    return None


def form_head(form: Any) -> Optional[str]:
    if isinstance(form, list) and form:
        return symbol_name(form[0])
    return None


def is_quoted_string(value: Any) -> bool:
    return isinstance(value, str) and symbol_name(value) is None
