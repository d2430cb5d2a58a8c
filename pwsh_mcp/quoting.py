"""
Escaping boundary for PowerShell command text.

Every caller-supplied value that ends up inside command text goes through
quote_literal(). Single-quoted PowerShell strings do no variable or
subexpression expansion, so the only character that can end the literal is
a single quote. PowerShell also treats the typographic single quotes as
quote characters, so those get doubled as well.
"""

from __future__ import annotations

# ' plus the four typographic variants PowerShell accepts as single quotes
SINGLE_QUOTES = frozenset("'\u2018\u2019\u201a\u201b")


def quote_literal(value: str) -> str:
    """Render value as a PowerShell single-quoted string literal."""
    if not isinstance(value, str):
        raise TypeError(f"quote_literal expects str, got {type(value).__name__}")
    escaped = "".join(ch * 2 if ch in SINGLE_QUOTES else ch for ch in value)
    return f"'{escaped}'"


def quote_wildcard(value: str) -> str:
    """Quote value wrapped in '*' wildcards (for -Name style filters)."""
    return quote_literal(f"*{value}*")
