"""Heuristic detection of garbled or off-language completions.

The upstream model occasionally drifts into another language or emits
concatenated token noise. Such responses are retried instead of shown.
The thresholds are empirical and meant to be tuned.
"""

import re
from typing import Any

MIN_RESPONSE_LENGTH = 10
MIN_FUNCTION_WORD_RATIO = 0.08
RATIO_MIN_WORDS = 15
LONG_WORD_LENGTH = 18
CAMEL_WORD_LENGTH = 12
MAX_SUSPICIOUS_WORDS = 2

FUNCTION_WORDS = frozenset({
    "le", "la", "de", "et", "tu", "je", "pour", "que", "est", "un", "une", "en",
    "ce", "il", "qui", "ne", "sur", "se", "pas", "plus", "par", "son", "avec",
    "tout", "faire", "comme", "ou", "si", "leur", "y", "mais", "nous", "cette",
    "ont", "bien", "où", "ces", "sans", "elle", "peut", "été", "aussi", "aux",
    "être", "fait", "sont", "quand", "ton", "ta", "tes",
})

_CYRILLIC_RE = re.compile(r"[\u0400-\u04FF]")
_UPPER_RE = re.compile(r"[A-Z]")


def is_suspicious_word(word: str) -> bool:
    return (
        len(word) > LONG_WORD_LENGTH
        or (len(word) > CAMEL_WORD_LENGTH and bool(_UPPER_RE.search(word[1:])))
        or bool(_CYRILLIC_RE.search(word))
    )


def is_valid_response(text: Any) -> bool:
    """Return False for empty, off-language or garbled completions; never raises."""
    if not isinstance(text, str) or len(text.strip()) < MIN_RESPONSE_LENGTH:
        return False

    words = text.split()
    lower_words = [word.lower() for word in words]
    function_count = sum(1 for word in lower_words if word in FUNCTION_WORDS)
    ratio = function_count / max(len(lower_words), 1)
    if ratio < MIN_FUNCTION_WORD_RATIO and len(lower_words) > RATIO_MIN_WORDS:
        return False

    suspicious = [word for word in words if is_suspicious_word(word)]
    return len(suspicious) <= MAX_SUSPICIOUS_WORDS
