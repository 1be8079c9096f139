"""Dictionary loader for first-name and surname lookup sets."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet

logger = logging.getLogger(__name__)

# Bundled data location (relative to this module)
BUNDLED_DATA_DIR = Path(__file__).parent / "data"


def load_dictionary(path: Path) -> FrozenSet[str]:
    """
    Load a dictionary file into a set.

    Args:
        path: Path to dictionary file (one term per line, '#' comments)

    Returns:
        Set of terms (lowercase, stripped)
    """
    terms = set()

    if not path.exists():
        logger.warning(f"Dictionary not found: {path}")
        return frozenset(terms)

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            # Skip comments and empty lines
            if not line or line.startswith("#"):
                continue
            terms.add(line.lower())

    logger.debug(f"Loaded {len(terms)} terms from {path.name}")
    return frozenset(terms)


def get_bundled_path(name: str) -> Path:
    """Get path to a bundled dictionary."""
    return BUNDLED_DATA_DIR / f"{name}.txt"


@lru_cache(maxsize=None)
def load_first_names() -> FrozenSet[str]:
    """Load known first names."""
    return load_dictionary(get_bundled_path("first_names"))


@lru_cache(maxsize=None)
def load_surnames() -> FrozenSet[str]:
    """Load known surnames."""
    return load_dictionary(get_bundled_path("surnames"))


def get_dictionary_status() -> dict:
    """Sizes of the bundled dictionaries."""
    return {
        "first_names": len(load_first_names()),
        "surnames": len(load_surnames()),
    }
