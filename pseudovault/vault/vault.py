"""Token vault - the caller-owned token <-> original value mapping."""

import re
import threading
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

# Tokens like [FULL_NAME_1], [EMAIL_12]
TOKEN_PATTERN = re.compile(r'\[([A-Z0-9_]+)_(\d+)\]')

_PREFIX_INVALID = re.compile(r'[^A-Z0-9]+')


def token_prefix(category: str) -> str:
    """Normalize a category into a token prefix: "full name" -> "FULL_NAME"."""
    if isinstance(category, Enum):
        category = category.value
    prefix = _PREFIX_INVALID.sub("_", str(category).strip().upper()).strip("_")
    if not prefix:
        return "OTHER"
    # Token patterns need a leading letter: "2FA" -> "OTHER_2FA"
    if not prefix[0].isalpha():
        prefix = f"OTHER_{prefix}"
    return prefix


def _value_key(value: str) -> str:
    return value.strip().lower()


class Vault:
    """
    Ordered mapping of token -> original value.

    - Tokens are unique.
    - A value already present (case-insensitive, trimmed) keeps its token,
      whatever category it was first stored under.
    - New tokens take the highest existing suffix for the category + 1.

    Minting is lock-protected so one vault can be shared by concurrent
    anonymize calls.

    Usage:
        vault = Vault()
        vault.get_or_create_token("Mario Rossi", "FULL_NAME")  # "[FULL_NAME_1]"
        vault.lookup_token("[FULL_NAME_1]")                    # "Mario Rossi"
    """

    __slots__ = ("_entries", "_by_value", "_lock")

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, str] = {}
        self._by_value: Dict[str, str] = {}
        self._lock = threading.RLock()
        if entries:
            for token, value in entries.items():
                self._put(token, value)

    def _put(self, token: str, value: str):
        self._entries[token] = value
        self._by_value.setdefault(_value_key(value), token)

    def get_or_create_token(self, value: str, category: str) -> str:
        """Get existing token for ``value`` or mint a new one.

        Args:
            value: Original sensitive value
            category: Category name, used as the token prefix

        Returns:
            Token string like "[FULL_NAME_1]"
        """
        value = value.strip()
        if not value:
            raise ValueError("Cannot tokenize an empty value")

        with self._lock:
            existing = self._by_value.get(_value_key(value))
            if existing is not None:
                return existing

            prefix = token_prefix(category)
            token = f"[{prefix}_{self._next_suffix(prefix)}]"
            self._put(token, value)
            return token

    def _next_suffix(self, prefix: str) -> int:
        highest = 0
        for token in self._entries:
            match = TOKEN_PATTERN.fullmatch(token)
            if match and match.group(1) == prefix:
                highest = max(highest, int(match.group(2)))
        return highest + 1

    def lookup_token(self, token: str) -> Optional[str]:
        """Original value for ``token``, or None."""
        with self._lock:
            return self._entries.get(token)

    def token_for(self, value: str) -> Optional[str]:
        """Token already assigned to ``value``, or None."""
        with self._lock:
            return self._by_value.get(_value_key(value))

    def items(self) -> List[Tuple[str, str]]:
        """Snapshot of (token, value) pairs in insertion order."""
        with self._lock:
            return list(self._entries.items())

    def to_dict(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._entries)

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "Vault":
        return cls(data)

    def copy(self) -> "Vault":
        return Vault(self.to_dict())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token) -> bool:
        return token in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __getitem__(self, token: str) -> str:
        return self._entries[token]

    def __eq__(self, other) -> bool:
        if isinstance(other, Vault):
            return self.to_dict() == other.to_dict()
        if isinstance(other, Mapping):
            return self.to_dict() == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Vault({len(self)} tokens)"


VaultLike = Union[Vault, Mapping[str, str]]


def vault_items(vault: VaultLike) -> List[Tuple[str, str]]:
    """(token, value) pairs of a Vault or a plain mapping."""
    if isinstance(vault, Vault):
        return vault.items()
    return list(vault.items())
