"""Reversible tokenization: vault, anonymize and restore."""

from .vault import Vault, TOKEN_PATTERN, token_prefix
from .tokenizer import tokenize, anonymize, restore, repair_tokens, build_matcher, find_tokens

__all__ = [
    "Vault",
    "TOKEN_PATTERN",
    "token_prefix",
    "tokenize",
    "anonymize",
    "restore",
    "repair_tokens",
    "build_matcher",
    "find_tokens",
]
