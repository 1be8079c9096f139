"""Structural pass - format-specific patterns with checksum validation."""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern
import logging

from ...types import Candidate, Category, ConfidenceTier, SourceType
from .checksum_rules import validate_credit_card, validate_fiscal_code, validate_iban

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r'\s+')


def get_context(text: str, start: int, length: int, size: int = 50) -> str:
    """Grab up to ``size`` characters around a span, whitespace collapsed."""
    lo = max(0, start - size)
    hi = min(len(text), start + length + size)
    return _WHITESPACE_RUN.sub(' ', text[lo:hi])


# =============================================================================
# RULE CLASS
# =============================================================================

@dataclass
class Rule:
    """A structural detection rule with optional validation."""
    name: str
    pattern: Pattern
    category: Category
    confidence: ConfidenceTier = ConfidenceTier.HIGH
    validator: Optional[Callable[[str], bool]] = None

    def find_all(self, text: str, context_window: int = 50) -> List[Candidate]:
        """Find all matches in text, applying validator if present.

        If the pattern has a group named ``value``, only that group becomes the
        candidate. This allows patterns like r'P\\.IVA\\s*(?P<value>\\d{11})'
        to capture just the number, not the label.
        """
        candidates = []
        for match in self.pattern.finditer(text):
            if "value" in self.pattern.groupindex and match.group("value") is not None:
                matched_text = match.group("value")
                start, end = match.span("value")
            else:
                matched_text = match.group()
                start, end = match.start(), match.end()

            value = matched_text.strip()
            if len(value) < 2:
                continue
            start += len(matched_text) - len(matched_text.lstrip())

            # Checksum failures are dropped silently
            if self.validator is not None and not self.validator(value):
                logger.debug(f"Rule {self.name}: match rejected by validator")
                continue

            candidates.append(Candidate(
                value=value,
                category=self.category,
                confidence=self.confidence,
                start=start,
                length=len(value),
                context=get_context(text, start, len(value), context_window),
                source=SourceType.RULE,
            ))
        return candidates


# =============================================================================
# RULE ENGINE
# =============================================================================

class RuleEngine:
    """Structural detection engine: emails, national IDs, bank data, phones, dates."""

    def __init__(self):
        self.rules: List[Rule] = []
        self._load_default_rules()

    def _load_default_rules(self):
        """Load built-in detection rules."""

        # =================================================================
        # CONTACT
        # =================================================================

        self.add_rule(Rule(
            name="email",
            pattern=re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
            category=Category.EMAIL,
        ))

        # International prefix followed by a long run of digits
        # (+44 7911123456), or Italian mobile/landline with optional +39/0039
        self.add_rule(Rule(
            name="phone_number",
            pattern=re.compile(
                r'(?<![\w+])'
                r'(?:'
                r'(?:\+|00)\d{1,4}[\s.-]*\d{9,}'
                r'|'
                r'(?:(?:\+|00)39[\s.-]?)?(?:3\d{2}|0\d{1,4})[\s.-]?\d{3,4}[\s.-]?\d{3,4}'
                r')'
                r'(?!\w)'
            ),
            category=Category.PHONE_NUMBER,
            confidence=ConfidenceTier.MEDIUM,
        ))

        # =================================================================
        # NATIONAL IDENTIFIERS
        # =================================================================

        # Codice fiscale: 6 letters, 2 digits, letter, 2 digits, letter, 3 digits, letter
        self.add_rule(Rule(
            name="fiscal_code",
            pattern=re.compile(r'\b[A-Z]{6}\d{2}[A-Z]\d{2}[A-Z]\d{3}[A-Z]\b'),
            category=Category.FISCAL_CODE,
            validator=validate_fiscal_code,
        ))

        # Partita IVA - only when labeled, 11 digits
        self.add_rule(Rule(
            name="vat_number",
            pattern=re.compile(
                r'\b(?:IT|P\.\s?IVA|PI|Partita\s+IVA)\s*[:.]?\s*(?P<value>\d{11})\b',
                re.I,
            ),
            category=Category.VAT_NUMBER,
        ))

        # US Employer Identification Number: XX-XXXXXXX
        self.add_rule(Rule(
            name="us_ein",
            pattern=re.compile(r'\b\d{2}-\d{7}\b'),
            category=Category.US_EIN,
        ))

        # =================================================================
        # FINANCIAL
        # =================================================================

        # IBAN, compact or printed in groups of four
        self.add_rule(Rule(
            name="iban",
            pattern=re.compile(r'\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]{4}){2,7}(?: ?[A-Z0-9]{1,4})?\b'),
            category=Category.IBAN,
            validator=validate_iban,
        ))

        self.add_rule(Rule(
            name="credit_card_standard",
            pattern=re.compile(r'\b(?:\d{4}[ -]?){3}\d{4}\b'),
            category=Category.CREDIT_CARD,
            validator=validate_credit_card,
        ))

        # Amex format: 15 digits (4-6-5)
        self.add_rule(Rule(
            name="credit_card_amex",
            pattern=re.compile(r'\b3[47]\d{2}[ -]?\d{6}[ -]?\d{5}\b'),
            category=Category.CREDIT_CARD,
            validator=validate_credit_card,
        ))

        # =================================================================
        # DATES
        # =================================================================

        # European DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY
        self.add_rule(Rule(
            name="date_european",
            pattern=re.compile(
                r'\b(?:0[1-9]|[12]\d|3[01])[-/.](?:0[1-9]|1[0-2])[-/.](?:19|20)\d{2}\b'
            ),
            category=Category.DATE,
            confidence=ConfidenceTier.MEDIUM,
        ))

        # ISO YYYY-MM-DD
        self.add_rule(Rule(
            name="date_iso",
            pattern=re.compile(
                r'\b(?:19|20)\d{2}[-/.](?:0[1-9]|1[0-2])[-/.](?:0[1-9]|[12]\d|3[01])\b'
            ),
            category=Category.DATE,
            confidence=ConfidenceTier.MEDIUM,
        ))

        # US MM/DD/YYYY - common in US tax forms
        self.add_rule(Rule(
            name="date_us",
            pattern=re.compile(
                r'\b(?:0[1-9]|1[0-2])[-/](?:0[1-9]|[12]\d|3[01])[-/](?:19|20)\d{2}\b'
            ),
            category=Category.DATE,
            confidence=ConfidenceTier.MEDIUM,
        ))

        # =================================================================
        # DIGITAL
        # =================================================================

        self.add_rule(Rule(
            name="ip_address",
            pattern=re.compile(
                r'\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}'
                r'(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b'
            ),
            category=Category.IP_ADDRESS,
        ))

        # Trailing punctuation belongs to the sentence, not the URL
        self.add_rule(Rule(
            name="url",
            pattern=re.compile(r'\bhttps?://[^\s<>"\']*[^\s<>"\'.,;:!?)\]]'),
            category=Category.URL,
        ))

    def add_rule(self, rule: Rule):
        """Add a detection rule."""
        self.rules.append(rule)

    def remove_rule(self, name: str) -> bool:
        """Remove a rule by name."""
        for i, rule in enumerate(self.rules):
            if rule.name == name:
                self.rules.pop(i)
                return True
        return False

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None

    def detect(self, text: str, context_window: int = 50) -> List[Candidate]:
        """Run all rules against text, in rule order."""
        candidates = []

        for rule in self.rules:
            candidates.extend(rule.find_all(text, context_window))

        return candidates

    def list_rules(self) -> List[dict]:
        """List all rules with their details."""
        return [
            {
                "name": r.name,
                "category": r.category.value,
                "confidence": r.confidence.value,
                "pattern": r.pattern.pattern,
                "has_validator": r.validator is not None,
            }
            for r in self.rules
        ]
