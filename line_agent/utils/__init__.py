"""
Utilities Module
Thai date/time resolution and text helpers
"""

from .text_helpers import (
    truncate_text,
    tokenize,
    char_ngrams,
    mask_email,
    sanitize_arguments,
)
from .thai_dates import (
    now_local,
    resolve_date,
    resolve_time,
    format_thai_date,
    format_thai_time,
)

__all__ = [
    "truncate_text",
    "tokenize",
    "char_ngrams",
    "mask_email",
    "sanitize_arguments",
    "now_local",
    "resolve_date",
    "resolve_time",
    "format_thai_date",
    "format_thai_time",
]
