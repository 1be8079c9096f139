"""Tokenizer - mechanical substitution of vault values and restoration.

anonymize() replaces every occurrence of every vault value with its
token, tolerating whitespace/separator and case variation in the text.
restore() puts the original values back, tolerating the ways chat
models tend to mangle tokens ("[ FULL_NAME_1 ]", "**[FULL_NAME_1]**",
"[FULL_NAME _1]").
"""

import re
from typing import Dict, List, Mapping, Optional, Pattern, Tuple
import logging

from ..types import Finding
from .vault import TOKEN_PATTERN, Vault, VaultLike, vault_items

logger = logging.getLogger(__name__)

# Characters a value may be broken by in the text: "G A L L I", "Carlo\nGalli"
SEPARATOR = r'[\s/.\-]*'

# "[NAME _1]", "[ NAME\n_1 ]" -> "[NAME_1]"
SPLIT_TOKEN_PATTERN = re.compile(r'\[\s*([A-Z][A-Z0-9_]*?)\s*(_\d+)\s*\]')

# Token optionally wrapped in matching bold markers
WRAPPED_TOKEN_PATTERN = re.compile(
    r'(?P<md>\*\*|__)?\[\s*(?P<core>[A-Z][A-Z0-9_]*_\d+)\s*\](?(md)(?P=md))'
)

# Splits text into plain segments and already-placed tokens
_TOKEN_SPLIT = re.compile(r'(\[[A-Z0-9_]+_\d+\])')

_PART_SPLIT = re.compile(r'[\s/]+')


def tokenize(finding: Finding, vault: Vault) -> str:
    """Get or mint the token for a finding."""
    return vault.get_or_create_token(finding.value, finding.category.value)


def build_matcher(value: str) -> Optional[Pattern]:
    """
    Build the tolerant matcher for one value.

    Whitespace is removed from the value, each remaining character is
    escaped, and the characters are joined with optional separators. Word
    boundaries are added only where the value starts/ends with a word
    character.
    """
    compact = re.sub(r'\s+', '', value)
    if len(compact) < 2:
        return None

    body = SEPARATOR.join(re.escape(c) for c in compact)
    start = r'\b' if re.match(r'\w', compact[0]) else ''
    end = r'\b' if re.match(r'\w', compact[-1]) else ''
    return re.compile(start + body + end, re.IGNORECASE)


def _expand_parts(entries: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Add the single words (> 2 chars) of multi-word values."""
    known = {value.strip().lower() for _, value in entries}
    expanded = list(entries)
    for token, value in entries:
        if not re.search(r'\s', value.strip()):
            continue
        for part in _PART_SPLIT.split(value.strip()):
            key = part.lower()
            if len(part) > 2 and key not in known:
                known.add(key)
                expanded.append((token, part))
    return expanded


def _substitute_outside_tokens(text: str, pattern: Pattern, token: str) -> Tuple[str, int]:
    segments = _TOKEN_SPLIT.split(text)
    total = 0
    for i in range(0, len(segments), 2):
        segments[i], count = pattern.subn(lambda m: token, segments[i])
        total += count
    return "".join(segments), total


def anonymize(
    text: str,
    vault: VaultLike,
    aliases: Optional[Mapping[str, str]] = None,
    censor_parts: bool = False,
) -> str:
    """
    Replace every vault value in ``text`` with its token.

    Args:
        text: Original text
        vault: Vault (or plain token -> value mapping)
        aliases: Extra surface forms -> token ("Sig. Rossi" -> "[FULL_NAME_1]")
        censor_parts: Also replace single words (> 2 chars) of multi-word values

    Returns:
        Anonymized text. Tokens already in the text are never altered.
    """
    if not text:
        return text

    entries = [(token, value) for token, value in vault_items(vault) if value and len(value.strip()) >= 2]
    if aliases:
        entries.extend((token, form) for form, token in aliases.items() if form and len(form.strip()) >= 2)
    if not entries:
        return text

    if censor_parts:
        entries = _expand_parts(entries)

    # Longest first, so "Mario Rossi" wins over "Rossi"
    entries.sort(key=lambda e: len(e[1]), reverse=True)

    result = text
    for token, value in entries:
        pattern = build_matcher(value)
        if pattern is None:
            continue
        result, count = _substitute_outside_tokens(result, pattern, token)
        if count:
            logger.debug(f"Replaced {count} occurrence(s) with {token}")
    return result


def repair_tokens(text: str) -> str:
    """Rejoin tokens a model split apart: "[FULL_NAME _1]" -> "[FULL_NAME_1]"."""
    return SPLIT_TOKEN_PATTERN.sub(r'[\1\2]', text)


def restore(text: str, vault: VaultLike) -> str:
    """
    Replace tokens with their original values.

    Split tokens are repaired first. Loose spacing inside the brackets and
    matching bold markers around the token are consumed. Tokens not in the
    vault are left as they are.
    """
    if not text:
        return text

    lookup: Dict[str, str] = dict(vault_items(vault))
    if not lookup:
        return text

    def replace_token(match):
        original = lookup.get(f"[{match.group('core')}]")
        return original if original is not None else match.group(0)

    return WRAPPED_TOKEN_PATTERN.sub(replace_token, repair_tokens(text))


def find_tokens(text: str) -> List[str]:
    """All well-formed tokens in ``text``, in order."""
    return [m.group(0) for m in TOKEN_PATTERN.finditer(text)]
