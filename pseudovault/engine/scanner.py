"""
Deterministic pattern scanner.

Passes:
- Structural rules (regex + checksum validation)
- Indicator heuristics (titles, entity nouns, locative phrases)
- Dictionary cross-reference (first name + surname pairs)

The scanner is pure: same text in, same candidate list out.
"""

from typing import Any, Dict, List, Optional
import logging

from ..types import Candidate
from .rules.engine import RuleEngine
from .rules.heuristics import DictionaryScanner, IndicatorScanner

logger = logging.getLogger(__name__)


class PatternScanner:
    """Runs every deterministic pass and merges the results."""

    def __init__(
        self,
        rule_engine: Optional[RuleEngine] = None,
        indicators: Optional[IndicatorScanner] = None,
        dictionary: Optional[DictionaryScanner] = None,
        context_window: int = 50,
    ):
        self.rule_engine = rule_engine or RuleEngine()
        self.indicators = indicators or IndicatorScanner()
        self.dictionary = dictionary or DictionaryScanner()
        self.context_window = context_window

    def scan(self, text: str) -> List[Candidate]:
        """
        Scan text for candidate sensitive spans.

        Args:
            text: Raw input text

        Returns:
            Deduplicated candidates keyed on (category, upper-cased value),
            in first-seen order. A later pass may raise the stored
            confidence tier but never lowers it.
        """
        if not text:
            return []

        # Stage 1: structural rules
        structural = self.rule_engine.detect(text, self.context_window)

        # Stage 2: introducer phrases
        heuristic = self.indicators.detect(text, self.context_window)

        # Stage 3: dictionary bigrams
        dictionary = self.dictionary.detect(text, self.context_window)

        merged: Dict[tuple, Candidate] = {}
        for candidate in structural + heuristic + dictionary:
            existing = merged.get(candidate.key)
            if existing is None:
                merged[candidate.key] = candidate
            elif candidate.confidence > existing.confidence:
                existing.confidence = candidate.confidence

        candidates = list(merged.values())
        logger.debug(
            f"Scanner: {len(structural)} structural, {len(heuristic)} heuristic, "
            f"{len(dictionary)} dictionary -> {len(candidates)} candidates"
        )
        return candidates

    def get_stack_status(self) -> Dict[str, Any]:
        """Get status of the scanner passes."""
        return {
            "rules": len(self.rule_engine.rules),
            "first_names": len(self.indicators.first_names),
            "surnames": len(self.indicators.surnames),
            "context_window": self.context_window,
        }
