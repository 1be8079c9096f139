"""pseudovault - sensitive-data detection and reversible tokenization.

Deterministic rules and dictionaries find candidates, a language model
("discovery oracle") finds what they miss, and every confirmed value is
swapped for a stable token like [FULL_NAME_1] that can be restored later.

Quick Start:
    from pseudovault import PrivacyEngine, Vault

    engine = PrivacyEngine()
    vault = Vault()

    result = engine.anonymize("Il sig. Mario Rossi, email mario.rossi@example.com", vault)
    safe_text = result.anonymized

    # ... send safe_text to an external model ...
    restored = engine.restore(llm_response, vault)
"""

__version__ = "0.1.0"

# Engine facade
from .sdk import (
    PrivacyEngine,
    AnonymizeResult,
)

# Core types
from .types import (
    Candidate,
    Finding,
    Category,
    ConfidenceTier,
    SourceType,
)

# Vault
from .vault import (
    Vault,
    tokenize,
    anonymize,
    restore,
)

# Exceptions
from .errors import (
    PseudovaultError,
    ConfigurationError,
    TransportError,
    OracleBusyError,
    OracleUnavailableError,
    ResponseFormatError,
)

# Configuration
from .config import (
    Config,
    get_config,
    set_config,
)

__all__ = [
    # Version
    "__version__",

    # Engine
    "PrivacyEngine",
    "AnonymizeResult",

    # Core types
    "Candidate",
    "Finding",
    "Category",
    "ConfidenceTier",
    "SourceType",

    # Vault
    "Vault",
    "tokenize",
    "anonymize",
    "restore",

    # Exceptions
    "PseudovaultError",
    "ConfigurationError",
    "TransportError",
    "OracleBusyError",
    "OracleUnavailableError",
    "ResponseFormatError",

    # Configuration
    "Config",
    "get_config",
    "set_config",
]
