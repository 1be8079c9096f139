"""
Noise filter for detected values - strings that should NOT become findings.

Oracle output regularly contains placeholders echoed from the prompt,
technical tokens, times of day and whole sentences. Everything here is
rejected before it can reach the vault.

Usage:
    from pseudovault.allowlist import is_noise, filter_noise
"""

import re
from typing import Iterable, List, Set, TypeVar

MIN_VALUE_LENGTH = 2
MAX_VALUE_WORDS = 12

# =============================================================================
# PLACEHOLDERS
# =============================================================================

PLACEHOLDERS = {
    "n/a",
    "na",
    "n.a.",
    "n.d.",
    "nd",
    "none",
    "null",
    "nil",
    "undefined",
    "unknown",
    "sconosciuto",
    "nessuno",
    "non presente",
    "non disponibile",
    "not available",
    "not found",
    "not specified",
    "non specificato",
    "empty",
    "vuoto",
    "value",
    "valore",
    "category",
    "categoria",
    "type",
    "tipo",
    "example",
    "esempio",
    "string",
    "text",
    "testo",
    "...",
    "xxx",
    "xxxx",
    "tbd",
    "-",
    "--",
    "redacted",
    "omissis",
}

# =============================================================================
# TECHNICAL TERMS
# =============================================================================

TECH_TERMS = {
    "api",
    "json",
    "xml",
    "html",
    "css",
    "http",
    "https",
    "url",
    "true",
    "false",
    "yes",
    "no",
    "post",
    "get",
    "put",
    "delete",
    "sql",
    "sdk",
    "uuid",
    "guid",
    "hash",
    "sha256",
    "md5",
    "base64",
    "utf-8",
    "ascii",
    "pdf",
    "docx",
    "xlsx",
    "pii",
    "ok",
}

# =============================================================================
# RELATIVE DATE TERMS
# =============================================================================

RELATIVE_DATES = {
    "today",
    "yesterday",
    "tomorrow",
    "now",
    "oggi",
    "ieri",
    "domani",
    "adesso",
}

# =============================================================================
# PATTERNS
# =============================================================================

NOISE_PATTERNS = [
    # Time of day: 12:30, 9.15, 12:30 PM, 08:00:00
    re.compile(r'^\d{1,2}[:.]\d{2}(?:[:.]\d{2})?\s*(?:[ap]\.?\s?m\.?)?$', re.IGNORECASE),
    re.compile(r'^\d{1,2}\s*[ap]\.?\s?m\.?$', re.IGNORECASE),
    # Template placeholders: <name>, {value}, [...], ***
    re.compile(r'^[<{\[]\s*[\w\s.]*[>}\]]$'),
    re.compile(r'^[\W_]+$'),
    # Tokens already minted by the vault
    re.compile(r'^\[\s*[A-Z][A-Z0-9_]*_\d+\s*\]$'),
]

# =============================================================================
# COMBINED NOISE LIST
# =============================================================================

NOISE_TERMS: Set[str] = set()
NOISE_TERMS.update(PLACEHOLDERS)
NOISE_TERMS.update(TECH_TERMS)
NOISE_TERMS.update(RELATIVE_DATES)


def is_noise(value: str, max_words: int = MAX_VALUE_WORDS) -> bool:
    """Check if a candidate value is noise.

    Args:
        value: Candidate value as found in text or oracle output
        max_words: Values with more words than this are sentences, not data

    Returns:
        True if the value must be discarded
    """
    if value is None:
        return True

    cleaned = value.strip()
    if len(cleaned) < MIN_VALUE_LENGTH:
        return True

    if cleaned.lower() in NOISE_TERMS:
        return True

    if len(cleaned.split()) > max_words:
        return True

    for pattern in NOISE_PATTERNS:
        if pattern.match(cleaned):
            return True

    return False


T = TypeVar("T")


def filter_noise(items: Iterable[T], max_words: int = MAX_VALUE_WORDS) -> List[T]:
    """Drop items whose ``value`` attribute is noise."""
    return [item for item in items if not is_noise(item.value, max_words=max_words)]


def get_noise_terms() -> Set[str]:
    """Get a copy of the current noise term list."""
    return NOISE_TERMS.copy()
