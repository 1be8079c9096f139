"""
Heuristic passes for names, organizations and birthplaces.

Two independent passes:
- Indicator pass: an introducer phrase ("Sig.", "nato a", "società")
  followed by 1-4 capitalized words.
- Dictionary pass: adjacent capitalized words checked against the
  first-name and surname dictionaries, for names without an introducer.
"""

import re
from typing import FrozenSet, List, Optional, Sequence
import logging

from ...types import Candidate, Category, ConfidenceTier, SourceType
from ...dictionaries import load_first_names, load_surnames
from .engine import get_context

logger = logging.getLogger(__name__)


# =============================================================================
# INDICATOR VOCABULARIES
# =============================================================================

# Titles and legal-role nouns that introduce a person
NAME_INDICATORS = [
    r'Sig\.ra', r'Sigg\.', r'Sig\.', r'Dott\.ssa', r'Dott\.', r'Dr\.',
    r'Prof\.ssa', r'Prof\.', r'Avv\.', r'Ing\.', r'Geom\.', r'Spett\.le', r'Spett\.',
    r'Gent\.mo', r'Gent\.ma', r'Gent\.', r'Mr\.', r'Mrs\.', r'Ms\.',
    'sottoscritto', 'sottoscritta', 'rappresentante', 'favore di', 'contro',
    'nominativo', 'dipendente', 'cliente', 'paziente', 'intestatario', 'intestataria',
]

# Nouns that introduce a company or public body
ORGANIZATION_INDICATORS = [
    'ente', 'società', 'ditta', 'azienda', 'studio', 'banca', 'istituto',
    'associazione', 'comune di', 'provincia di', 'regione', 'ministero', 'tribunale',
]

# Locative phrases that introduce a birthplace or residence
BIRTHPLACE_INDICATORS = [
    'nato a', 'nata a', 'nati a', 'residente a', 'residente in', 'vivente a',
    'domiciliato a', 'domiciliata a', 'sito in', 'sede a', 'luogo di nascita',
]

# Sentence-starting function words that are never the first word of a value
STOPLIST = frozenset({
    'si', 'non', 'vi', 'ci', 'le', 'gli', 'lo', 'il', 'la', 'i', 'che', 'chi',
    'dichiara', 'del', 'della', 'dei', 'di', 'da', 'in', 'per', 'con', 'un',
    'una', 'uno', 'e', 'a', 'the', 'and', 'of',
})

# Words that end a captured value (street types, verbs that follow a name)
BREAK_WORDS = frozenset({
    'via', 'viale', 'piazza', 'corso', 'vicolo', 'largo', 'nato', 'nata',
    'residente', 'codice', 'email', 'tel', 'telefono', 'cf',
})

# A capitalized word: "Mario", "Àlvaro", "D'Angelo"
_WORD = r"[A-ZÀ-Ý](?:[a-zà-ÿ]+|['’][A-ZÀ-Ý][a-zà-ÿ]+)"
_CAPITALIZED = re.compile(_WORD)
_UPPER_WORD = re.compile(r"[A-ZÀ-Ý]{3,}")

# Candidate word tokens for the dictionary pass
_TOKEN = re.compile(r'[^\s,.:;()"]+')


def _indicator_pattern(indicators: Sequence[str]) -> re.Pattern:
    """Introducer (case-insensitive) + 1-4 capitalized words (case-sensitive)."""
    words = rf"(?-i:{_WORD})"
    return re.compile(
        rf"(?<!\w)(?:{'|'.join(indicators)})[ \t]+"
        rf"(?P<value>{words}(?:[ \t]+{words}){{0,3}})",
        re.IGNORECASE,
    )


def is_capitalized(word: str) -> bool:
    """Capitalization test: initial upper-case letter followed by lower-case."""
    return bool(_CAPITALIZED.fullmatch(word))


def name_confidence(
    words: Sequence[str],
    first_names: FrozenSet[str],
    surnames: FrozenSet[str],
) -> ConfidenceTier:
    """HIGH if both a first name and a surname are known, MEDIUM if one, else LOW."""
    lowered = [w.lower() for w in words]
    name_hit = any(w in first_names for w in lowered)
    surname_hit = any(w in surnames for w in lowered)
    if name_hit and surname_hit:
        return ConfidenceTier.HIGH
    if name_hit or surname_hit:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


# =============================================================================
# INDICATOR PASS
# =============================================================================

class IndicatorScanner:
    """Introducer phrase + capitalized words."""

    def __init__(
        self,
        first_names: Optional[FrozenSet[str]] = None,
        surnames: Optional[FrozenSet[str]] = None,
    ):
        self.first_names = first_names if first_names is not None else load_first_names()
        self.surnames = surnames if surnames is not None else load_surnames()
        self._patterns = [
            (Category.FULL_NAME, _indicator_pattern(NAME_INDICATORS)),
            (Category.ORGANIZATION, _indicator_pattern(ORGANIZATION_INDICATORS)),
            (Category.PLACE_OF_BIRTH, _indicator_pattern(BIRTHPLACE_INDICATORS)),
        ]

    def detect(self, text: str, context_window: int = 50) -> List[Candidate]:
        candidates = []
        for category, pattern in self._patterns:
            for match in pattern.finditer(text):
                words = match.group("value").split()

                # Stop at the first word that starts a new clause
                for i, word in enumerate(words):
                    if i > 0 and word.lower() in BREAK_WORDS:
                        words = words[:i]
                        break

                if not self._accept(words, category):
                    continue

                value = " ".join(words)
                if len(value) <= 3:
                    continue

                if category == Category.FULL_NAME:
                    confidence = name_confidence(words, self.first_names, self.surnames)
                else:
                    confidence = ConfidenceTier.MEDIUM

                start = match.start("value")
                length = _span_length(text, start, words)
                candidates.append(Candidate(
                    value=value,
                    category=category,
                    confidence=confidence,
                    start=start,
                    length=length,
                    context=get_context(text, start, length, context_window),
                    source=SourceType.HEURISTIC,
                ))
        return candidates

    @staticmethod
    def _accept(words: List[str], category: Category) -> bool:
        if not words:
            return False
        # A person needs at least name + surname
        if category == Category.FULL_NAME and len(words) < 2:
            return False
        if not all(is_capitalized(w) for w in words):
            return False
        if words[0].lower() in STOPLIST:
            return False
        return True


def _span_length(text: str, start: int, words: List[str]) -> int:
    """Length of the text span starting at ``start`` that covers ``words``."""
    pos = start
    for word in words:
        pos = text.index(word, pos) + len(word)
    return pos - start


# =============================================================================
# DICTIONARY PASS
# =============================================================================

class DictionaryScanner:
    """Adjacent word pairs cross-referenced against name dictionaries."""

    def __init__(
        self,
        first_names: Optional[FrozenSet[str]] = None,
        surnames: Optional[FrozenSet[str]] = None,
    ):
        self.first_names = first_names if first_names is not None else load_first_names()
        self.surnames = surnames if surnames is not None else load_surnames()

    def detect(self, text: str, context_window: int = 50) -> List[Candidate]:
        candidates = []
        tokens = list(_TOKEN.finditer(text))

        for first, second in zip(tokens, tokens[1:]):
            gap = text[first.end():second.start()]
            if not gap or not gap.isspace():
                continue

            w1, w2 = first.group(), second.group()
            if len(w1) <= 2 or len(w2) <= 2:
                continue
            if w1.lower() in STOPLIST:
                continue

            name_hit = w1.lower() in self.first_names
            surname_hit = w2.lower() in self.surnames
            # Surname-first order, as in forms: "Rossi Mario"
            reversed_hit = w1.lower() in self.surnames and w2.lower() in self.first_names

            if (name_hit and surname_hit) or reversed_hit:
                confidence = ConfidenceTier.HIGH
            elif name_hit or surname_hit:
                confidence = ConfidenceTier.MEDIUM
            else:
                confidence = ConfidenceTier.LOW

            # Upper-case forms ("MARIO ROSSI") only count with a dictionary hit
            title_case = is_capitalized(w1) and is_capitalized(w2)
            upper_case = bool(_UPPER_WORD.fullmatch(w1) and _UPPER_WORD.fullmatch(w2))
            if not title_case and not (upper_case and confidence != ConfidenceTier.LOW):
                continue

            start = first.start()
            length = second.end() - start
            candidates.append(Candidate(
                value=f"{w1} {w2}",
                category=Category.FULL_NAME,
                confidence=confidence,
                start=start,
                length=length,
                context=get_context(text, start, length, context_window),
                source=SourceType.DICTIONARY,
            ))
        return candidates
