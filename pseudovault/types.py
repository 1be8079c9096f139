"""Core types for sensitive-data detection and tokenization."""

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Supported sensitive-data categories.

    The value doubles as the token prefix, e.g. ``[FULL_NAME_1]``.
    """

    # Identity
    FULL_NAME = "FULL_NAME"
    ORGANIZATION = "ORGANIZATION"
    PLACE_OF_BIRTH = "PLACE_OF_BIRTH"
    DATE_OF_BIRTH = "DATE_OF_BIRTH"
    GENDER = "GENDER"
    NATIONALITY = "NATIONALITY"
    ID_DOCUMENT = "ID_DOCUMENT"
    FISCAL_CODE = "FISCAL_CODE"
    VAT_NUMBER = "VAT_NUMBER"
    US_EIN = "US_EIN"

    # Contact
    ADDRESS = "ADDRESS"
    EMAIL = "EMAIL"
    PHONE_NUMBER = "PHONE_NUMBER"

    # Temporal
    DATE = "DATE"

    # Financial
    IBAN = "IBAN"
    CREDIT_CARD = "CREDIT_CARD"
    FINANCIAL_DATA = "FINANCIAL_DATA"

    # Digital
    IP_ADDRESS = "IP_ADDRESS"
    URL = "URL"

    # Special categories (GDPR art. 9)
    HEALTH_DATA = "HEALTH_DATA"
    BIOMETRIC_DATA = "BIOMETRIC_DATA"
    GENETIC_DATA = "GENETIC_DATA"
    POLITICAL_OPINION = "POLITICAL_OPINION"
    RELIGIOUS_BELIEF = "RELIGIOUS_BELIEF"
    TRADE_UNION = "TRADE_UNION"
    SEXUAL_ORIENTATION = "SEXUAL_ORIENTATION"

    # Professional
    PROFESSIONAL_ROLE = "PROFESSIONAL_ROLE"

    OTHER = "OTHER"


# Categories found by introducer phrases / dictionaries rather than by
# structure. These are never auto-accepted on structural grounds.
CONTEXTUAL_CATEGORIES = frozenset({
    Category.FULL_NAME,
    Category.ORGANIZATION,
    Category.PLACE_OF_BIRTH,
})


class ConfidenceTier(str, Enum):
    """Reliability of a candidate before oracle confirmation."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self.value]

    def __ge__(self, other):
        if isinstance(other, ConfidenceTier):
            return self.rank >= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, ConfidenceTier):
            return self.rank > other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, ConfidenceTier):
            return self.rank <= other.rank
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, ConfidenceTier):
            return self.rank < other.rank
        return NotImplemented


_TIER_RANK = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}


class SourceType(str, Enum):
    """Which scanner pass produced a candidate."""
    RULE = "rule"
    HEURISTIC = "heuristic"
    DICTIONARY = "dictionary"


@dataclass
class Candidate:
    """An unconfirmed, deterministically detected sensitive span."""
    value: str
    category: Category
    confidence: ConfidenceTier
    start: int
    length: int
    context: str = ""
    source: SourceType = SourceType.RULE

    def __post_init__(self):
        if isinstance(self.category, str):
            self.category = Category(self.category)
        if isinstance(self.confidence, str):
            self.confidence = ConfidenceTier(self.confidence)
        if isinstance(self.source, str):
            self.source = SourceType(self.source)

    @property
    def end(self) -> int:
        return self.start + self.length

    @property
    def key(self) -> tuple:
        """Deduplication key: (category, uppercased value)."""
        return (self.category, self.value.upper())


@dataclass
class Finding:
    """A confirmed, categorized sensitive value."""
    value: str
    category: Category
    label: str = ""

    def __post_init__(self):
        if isinstance(self.category, str):
            self.category = Category(self.category)
        if not self.label:
            self.label = self.category.value

    @property
    def key(self) -> str:
        """Uniqueness key: case-insensitive trimmed value."""
        return self.value.strip().lower()
