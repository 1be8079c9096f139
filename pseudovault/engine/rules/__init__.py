"""Structural rules, checksum validators and name heuristics."""

from .engine import Rule, RuleEngine, get_context
from .checksum_rules import (
    validate_fiscal_code,
    luhn_checksum,
    validate_credit_card,
    validate_iban,
)
from .heuristics import IndicatorScanner, DictionaryScanner

__all__ = [
    "Rule",
    "RuleEngine",
    "get_context",
    "validate_fiscal_code",
    "luhn_checksum",
    "validate_credit_card",
    "validate_iban",
    "IndicatorScanner",
    "DictionaryScanner",
]
