"""
Text Helper Utilities
Common utility functions for the LINE agent
"""

import re
from typing import Any, Dict, List


_TOKEN_SPLIT = re.compile(r"[\s,./:;!?()\[\]\"'“”‘’\-]+")


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to maximum length

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to append when truncated

    Returns:
        str: Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - len(suffix))] + suffix


def tokenize(text: str, min_length: int = 2) -> List[str]:
    """Lower-cased tokens split on whitespace and punctuation"""
    if not text:
        return []
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) >= min_length]


def char_ngrams(text: str, n: int = 3) -> set:
    """
    Character n-grams of the text with whitespace removed.

    Thai is written without spaces between words, so word tokens alone
    miss most overlaps; n-grams give a usable similarity signal.
    """
    compact = re.sub(r"\s+", "", (text or "").lower())
    if len(compact) < n:
        return {compact} if compact else set()
    return {compact[i:i + n] for i in range(len(compact) - n + 1)}


def mask_email(email: str) -> str:
    """somchai@school.ac.th -> s***@school.ac.th"""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


def sanitize_arguments(arguments: Dict[str, Any], max_length: int = 60) -> Dict[str, Any]:
    """
    Make invocation arguments safe to log.

    Image data URLs are dropped, e-mail addresses masked and long strings
    truncated.
    """
    clean: Dict[str, Any] = {}
    for key, value in arguments.items():
        if isinstance(value, str):
            if value.startswith("data:"):
                clean[key] = f"<{value.split(';', 1)[0][5:]} data>"
            elif "@" in value and " " not in value:
                clean[key] = mask_email(value)
            else:
                clean[key] = truncate_text(value, max_length)
        else:
            clean[key] = value
    return clean
