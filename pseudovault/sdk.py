"""pseudovault SDK - detect, anonymize and restore sensitive data.

Quick Start:
    from pseudovault import PrivacyEngine, Vault

    engine = PrivacyEngine()
    vault = Vault()

    result = engine.anonymize("Il sig. Mario Rossi, email mario.rossi@example.com", vault)
    # result.anonymized == "Il sig. [FULL_NAME_1], email [EMAIL_1]"

    # ... send result.anonymized to an external model ...
    restored = engine.restore(llm_response, vault)

Async Usage:
    result = await engine.anonymize_async(text, vault)
    restored = await engine.restore_async(llm_response, vault)
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from .config import Config, get_config
from .dictionaries import get_dictionary_status
from .discovery import DiscoveryClient, InferenceTransport
from .engine.scanner import PatternScanner
from .engine.unifier import apply_surface_forms, unify
from .types import Candidate, Finding
from .vault import Vault, anonymize, restore, tokenize
from .vault.vault import VaultLike

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class AnonymizeResult:
    """Result of anonymizing one text."""
    anonymized: str
    new_vault: Vault
    findings: List[Finding]
    aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def has_pii(self) -> bool:
        return len(self.findings) > 0

    def restore(self, text: str) -> str:
        """Restore tokens in text (e.g., a model response)."""
        return restore(text, self.new_vault)


# =============================================================================
# ENGINE
# =============================================================================

class PrivacyEngine:
    """Scanner + discovery oracle + unifier + vault, behind one object.

    Each engine owns its configuration, transport and thread pool; two
    engines pointed at different backends do not interfere.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[InferenceTransport] = None,
        scanner: Optional[PatternScanner] = None,
        discovery: Optional[DiscoveryClient] = None,
    ):
        self.config = config or get_config()
        self.scanner = scanner or PatternScanner(context_window=self.config.scanner.context_window)
        self.discovery = discovery or DiscoveryClient(
            config=self.config.discovery,
            transport=transport,
            max_finding_words=self.config.max_finding_words,
        )
        self._executor: Optional[ThreadPoolExecutor] = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="pseudovault_")
        return self._executor

    # =========================================================================
    # SYNC API
    # =========================================================================

    def scan(self, text: str) -> List[Candidate]:
        """Deterministic candidates only (no oracle)."""
        return self.scanner.scan(text)

    def detect(
        self,
        text: str,
        model_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Finding]:
        """
        Find sensitive values in text.

        Args:
            text: Text to analyse
            model_id: Oracle model (defaults to the configured one)
            cancel_event: Set it to abandon outstanding oracle calls

        Returns:
            Canonical findings. If the oracle yields nothing, MEDIUM
            scanner candidates are accepted as well.
        """
        if not text or not text.strip():
            return []

        candidates = self.scanner.scan(text)
        llm_findings = self.discovery.discover(text, candidates, model_id, cancel_event)

        if not llm_findings:
            logger.info("Oracle returned no findings, falling back to MEDIUM candidates")

        return unify(
            candidates,
            llm_findings,
            include_medium=not llm_findings,
            auto_accept_names=self.config.auto_accept_names,
            max_words=self.config.max_finding_words,
        )

    def anonymize(
        self,
        text: str,
        vault: Optional[VaultLike] = None,
        model_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AnonymizeResult:
        """
        Detect, tokenize and substitute.

        Args:
            text: Original text
            vault: A Vault is updated in place; a plain mapping is copied
                into a new Vault; None starts an empty one
            model_id: Oracle model
            cancel_event: Set it to abandon outstanding oracle calls

        Returns:
            AnonymizeResult with the anonymized text, the updated vault
            and the findings that were tokenized
        """
        if isinstance(vault, Vault):
            new_vault = vault
        else:
            new_vault = Vault(vault or {})

        if not text or not text.strip():
            return AnonymizeResult(anonymized=text, new_vault=new_vault, findings=[])

        findings = self.detect(text, model_id, cancel_event)

        alias_values: Dict[str, str] = {}
        if findings and self.config.discovery.unify_surface_forms:
            mapping = self.discovery.unify_surface_forms(findings, model_id, cancel_event)
            findings, alias_values = apply_surface_forms(findings, mapping)

        for finding in findings:
            tokenize(finding, new_vault)

        aliases = {}
        for variant, canonical in alias_values.items():
            token = new_vault.token_for(canonical)
            if token is not None:
                aliases[variant] = token

        anonymized = anonymize(
            text,
            new_vault,
            aliases=aliases,
            censor_parts=self.config.vault.censor_parts,
        )
        logger.info(f"Anonymized {len(findings)} findings ({len(new_vault)} tokens in vault)")

        return AnonymizeResult(
            anonymized=anonymized,
            new_vault=new_vault,
            findings=findings,
            aliases=aliases,
        )

    def restore(self, text: str, vault: VaultLike) -> str:
        """Replace tokens in text with their original values."""
        return restore(text, vault)

    # =========================================================================
    # ASYNC API
    # =========================================================================

    async def detect_async(self, text: str, model_id: Optional[str] = None) -> List[Finding]:
        """Async version of detect()."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self._get_executor(),
            lambda: self.detect(text, model_id),
        )

    async def anonymize_async(
        self,
        text: str,
        vault: Optional[VaultLike] = None,
        model_id: Optional[str] = None,
    ) -> AnonymizeResult:
        """Async version of anonymize().

        Cancelling the awaiting task stops outstanding oracle calls.
        """
        cancel_event = threading.Event()
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                self._get_executor(),
                lambda: self.anonymize(text, vault, model_id, cancel_event),
            )
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    async def restore_async(self, text: str, vault: VaultLike) -> str:
        """Async version of restore()."""
        return self.restore(text, vault)

    # =========================================================================
    # STATUS / LIFECYCLE
    # =========================================================================

    def get_stack_status(self) -> Dict[str, Any]:
        """Get status of all pipeline components."""
        return {
            "scanner": self.scanner.get_stack_status(),
            "dictionaries": get_dictionary_status(),
            "discovery": {
                "provider": self.config.discovery.provider,
                "model": self.config.discovery.model,
                "tier": self.discovery.tier(),
                "chunk_chars": self.discovery.chunk_size(),
            },
        }

    def close(self):
        self.discovery.close()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def __enter__(self) -> "PrivacyEngine":
        return self

    def __exit__(self, *args):
        self.close()


__all__ = [
    "PrivacyEngine",
    "AnonymizeResult",
]
