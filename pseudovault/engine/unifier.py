"""
Finding unifier - merges scanner candidates with oracle findings.

Acceptance policy:
- HIGH structural candidates (checksum-validated or unambiguous formats)
  are accepted without oracle confirmation.
- HIGH name candidates (first name and surname both in the dictionaries)
  are accepted when ``auto_accept_names`` is set.
- MEDIUM candidates are accepted only when ``include_medium`` is set,
  which callers do when the oracle produced nothing.
- Oracle findings are folded in by case-insensitive trimmed value; on a
  collision the more specific category wins.
"""

from typing import Dict, List, Mapping, Sequence, Tuple
import logging

from ..allowlist import MAX_VALUE_WORDS, filter_noise
from ..types import (
    CONTEXTUAL_CATEGORIES,
    Candidate,
    Category,
    ConfidenceTier,
    Finding,
)

logger = logging.getLogger(__name__)


# Categories that say nothing about the kind of data
GENERIC_CATEGORIES = frozenset({Category.OTHER})

# Categories with a more specific sibling (DATE vs DATE_OF_BIRTH,
# FINANCIAL_DATA vs IBAN / CREDIT_CARD)
BROAD_CATEGORIES = frozenset({Category.DATE, Category.FINANCIAL_DATA})


def specificity(category: Category) -> int:
    """Rank a category: generic (0) < broad (1) < specific (2)."""
    if category in GENERIC_CATEGORIES:
        return 0
    if category in BROAD_CATEGORIES:
        return 1
    return 2


def _accepts(candidate: Candidate, include_medium: bool, auto_accept_names: bool) -> bool:
    if candidate.confidence == ConfidenceTier.HIGH:
        if candidate.category not in CONTEXTUAL_CATEGORIES:
            return True
        return auto_accept_names and candidate.category == Category.FULL_NAME
    if candidate.confidence == ConfidenceTier.MEDIUM:
        return include_medium
    return False


def unify(
    candidates: Sequence[Candidate],
    llm_findings: Sequence[Finding],
    include_medium: bool = False,
    auto_accept_names: bool = True,
    max_words: int = MAX_VALUE_WORDS,
) -> List[Finding]:
    """
    Build the canonical finding set.

    Args:
        candidates: Scanner output
        llm_findings: Parsed oracle output (may be empty)
        include_medium: Also accept MEDIUM candidates
        auto_accept_names: Accept double-dictionary name hits unconfirmed
        max_words: Values longer than this are dropped as sentences

    Returns:
        Findings in insertion order, unique by case-insensitive value
    """
    unified: Dict[str, Finding] = {}

    for candidate in candidates:
        if not _accepts(candidate, include_medium, auto_accept_names):
            continue
        finding = Finding(value=candidate.value.strip(), category=candidate.category)
        _merge(unified, finding)

    seeded = len(unified)

    for finding in llm_findings:
        if not finding.value or not finding.value.strip():
            continue
        _merge(unified, Finding(
            value=finding.value.strip(),
            category=finding.category,
            label=finding.label,
        ))

    results = filter_noise(unified.values(), max_words=max_words)
    logger.info(
        f"Unified {seeded} accepted candidates and {len(llm_findings)} oracle findings "
        f"into {len(results)} findings"
    )
    return results


def _merge(unified: Dict[str, Finding], incoming: Finding):
    """Insert, or upgrade the stored category when the incoming one is more specific."""
    existing = unified.get(incoming.key)
    if existing is None:
        unified[incoming.key] = incoming
        return
    if specificity(incoming.category) > specificity(existing.category):
        logger.debug(f"Upgrading {existing.category.value} -> {incoming.category.value}")
        existing.category = incoming.category
        existing.label = incoming.label


def apply_surface_forms(
    findings: Sequence[Finding],
    mapping: Mapping[str, str],
) -> Tuple[List[Finding], Dict[str, str]]:
    """
    Collapse surface variants ("Sig. Rossi", "M. Rossi") onto canonical findings.

    A variant is only collapsed when its canonical value is itself one of
    the findings; anything else is left alone.

    Returns:
        (remaining findings, {variant value: canonical value})
    """
    by_key = {f.key: f for f in findings}
    aliases: Dict[str, str] = {}

    for variant, canonical in mapping.items():
        if not isinstance(variant, str) or not isinstance(canonical, str):
            continue
        variant_key = variant.strip().lower()
        target = by_key.get(canonical.strip().lower())
        if target is None or variant_key == target.key or variant_key not in by_key:
            continue
        aliases[by_key[variant_key].value] = target.value

    remaining = [f for f in findings if f.value not in aliases]
    if aliases:
        logger.info(f"Collapsed {len(aliases)} surface variants")
    return remaining, aliases
