"""Very light text heuristics for the profile editor. No external services."""

import re

from app.core.constants import SPELLCHECK_LONG_WORD_LENGTH

_LONG_WORD = re.compile(rf"\b\w{{{SPELLCHECK_LONG_WORD_LENGTH},}}\b")
_REPEATED_WHITESPACE = re.compile(r"\s{2,}")


def check_text(text) -> str | None:
    """Return a warning for suspiciously long words or doubled whitespace, else None."""
    if not text or not isinstance(text, str):
        return None

    warnings = []
    long_words = len(_LONG_WORD.findall(text))
    if long_words:
        warnings.append(f"Very long words found ({long_words}).")
    if _REPEATED_WHITESPACE.search(text):
        warnings.append("Repeated whitespace found.")
    return " ".join(warnings) or None
