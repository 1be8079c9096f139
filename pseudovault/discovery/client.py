"""
Discovery client - asks the oracle for sensitive data the scanner missed.

The text is split into chunks sized to the model, each chunk is sent
with the scanner candidates it contains as hints, and the parsed
findings are joined back in chunk order. Network, service and parse
failures never escape: a failed chunk contributes no findings.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence
import logging
import threading
import time

from ..allowlist import MAX_VALUE_WORDS
from ..config import DiscoveryConfig, get_config
from ..errors import OracleBusyError, TransportError
from ..types import Candidate, Finding
from .chunking import LIGHT, Chunk, model_tier, split_into_chunks
from .parser import parse_findings, parse_mapping
from .prompts import build_messages, build_surface_form_messages, select_hints
from .transport import InferenceRequest, InferenceTransport, get_transport

logger = logging.getLogger(__name__)

# Granularity of cancellation checks while waiting or backing off
_POLL_SECONDS = 0.1


class DiscoveryClient:
    """Chunked, concurrent, retrying client for the discovery oracle."""

    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        transport: Optional[InferenceTransport] = None,
        max_finding_words: int = MAX_VALUE_WORDS,
    ):
        self.config = config or get_config().discovery
        self.config.validate()
        self.transport = transport or get_transport(self.config)
        self.max_finding_words = max_finding_words

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def tier(self, model_id: Optional[str] = None) -> str:
        """Model tier ("light" or "heavy") for ``model_id``."""
        return model_tier(
            model_id or self.config.model,
            self.config.provider,
            self.config.light_model_markers,
        )

    def chunk_size(self, model_id: Optional[str] = None) -> int:
        """Chunk budget in characters for ``model_id``."""
        if self.tier(model_id) == LIGHT:
            return self.config.light_chunk_chars
        return self.config.heavy_chunk_chars

    def discover(
        self,
        text: str,
        candidates: Sequence[Candidate] = (),
        model_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Finding]:
        """
        Ask the oracle for sensitive values in ``text``.

        Args:
            text: Full input text
            candidates: Scanner candidates, sent as per-chunk hints
            model_id: Model to use (defaults to the configured one)
            cancel_event: Set it to abandon pending and in-flight chunks

        Returns:
            Findings in chunk order, unique by case-insensitive value.
            Empty on total failure.
        """
        if not text or not text.strip():
            return []

        model = model_id or self.config.model
        chunks = split_into_chunks(text, self.chunk_size(model), self.config.chunk_overlap)
        logger.info(f"Discovery: {len(chunks)} chunks, model {model} ({self.tier(model)})")

        # Set by us when the overall deadline passes; the caller's event is never touched
        deadline = threading.Event()
        stop_events = [deadline] + ([cancel_event] if cancel_event is not None else [])

        overall_timeout = self.config.timeout * (self.config.busy_retries + 2)
        results: Dict[int, List[Finding]] = {}

        executor = ThreadPoolExecutor(max_workers=min(self.config.max_workers, len(chunks)))
        try:
            futures = {
                executor.submit(self._discover_chunk, chunk, candidates, model, stop_events): chunk.index
                for chunk in chunks
            }
            pending = set(futures)
            give_up_at = time.monotonic() + overall_timeout

            while pending and not _stopped(stop_events):
                remaining = give_up_at - time.monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=min(remaining, _POLL_SECONDS))
                for future in done:
                    try:
                        results[futures[future]] = future.result()
                    except Exception as e:
                        logger.error(f"Discovery chunk {futures[future]} failed: {e}")

            if pending:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Discovery cancelled, abandoning {len(pending)} chunks")
                else:
                    logger.warning(f"Discovery: {len(pending)} chunks did not finish in time")
                # In-flight chunks see this and drop whatever they get back
                deadline.set()
                for future in pending:
                    future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        findings: List[Finding] = []
        seen = set()
        for index in sorted(results):
            for finding in results[index]:
                if finding.key in seen:
                    continue
                seen.add(finding.key)
                findings.append(finding)

        logger.info(f"Discovery complete: {len(findings)} findings from {len(results)}/{len(chunks)} chunks")
        return findings

    def unify_surface_forms(
        self,
        findings: Sequence[Finding],
        model_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, str]:
        """
        Ask the oracle which findings are variants of the same entity.

        Skipped for light models. Any failure gives an empty mapping,
        meaning every value is its own canonical form.

        Returns:
            {variant value: canonical value}
        """
        if not self.config.unify_surface_forms or len(findings) < 2:
            return {}

        model = model_id or self.config.model
        if self.tier(model) == LIGHT:
            logger.debug("Surface-form unification skipped for light model")
            return {}

        stop_events = [cancel_event] if cancel_event is not None else []
        try:
            request = self._request(model, build_surface_form_messages(findings))
            content = self._send_with_retry(request, stop_events)
            if content is None or _stopped(stop_events):
                return {}
            return parse_mapping(content)
        except Exception as e:
            logger.error(f"Surface-form unification failed: {e}")
            return {}

    def is_available(self, model_id: Optional[str] = None) -> bool:
        """Check if the oracle is reachable and serves the model."""
        return self.transport.is_available(model_id or self.config.model)

    def close(self):
        self.transport.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _request(self, model: str, messages: List[Dict[str, str]]) -> InferenceRequest:
        return InferenceRequest(
            model=model,
            messages=messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout=self.config.timeout,
        )

    def _discover_chunk(
        self,
        chunk: Chunk,
        candidates: Sequence[Candidate],
        model: str,
        stop_events: List[threading.Event],
    ) -> List[Finding]:
        if _stopped(stop_events):
            return []

        hints = select_hints(candidates, chunk.text)
        request = self._request(model, build_messages(chunk.text, hints))

        content = self._send_with_retry(request, stop_events)
        if content is None:
            return []
        if _stopped(stop_events):
            logger.debug(f"Chunk {chunk.index}: answer arrived after stop, dropped")
            return []
        logger.debug(f"Chunk {chunk.index} raw response: {content[:500]}")

        findings = parse_findings(content, max_words=self.max_finding_words)
        logger.debug(f"Chunk {chunk.index}: {len(hints)} hints, {len(findings)} findings")
        return findings

    def _send_with_retry(
        self,
        request: InferenceRequest,
        stop_events: List[threading.Event],
    ) -> Optional[str]:
        """Send with busy backoff and one retry on failure. None means give up."""
        delay = self.config.backoff_seconds
        busy_left = self.config.busy_retries
        failures_left = self.config.failure_retries

        while not _stopped(stop_events):
            try:
                return self.transport.send(request).content
            except OracleBusyError as e:
                if busy_left <= 0:
                    logger.warning(f"Oracle still busy after {self.config.busy_retries} retries, giving up chunk")
                    return None
                busy_left -= 1
                logger.warning(f"Oracle busy (status {e.status}), retrying in {delay:.1f}s")
                if _pause(delay, stop_events):
                    return None
                delay *= 2
            except TransportError as e:
                if failures_left <= 0:
                    logger.warning(f"Oracle request failed, giving up chunk: {e}")
                    return None
                failures_left -= 1
                logger.warning(f"Oracle request failed, retrying: {e}")
                if _pause(delay, stop_events):
                    return None

        return None


def _stopped(events: Sequence[threading.Event]) -> bool:
    return any(e.is_set() for e in events)


def _pause(seconds: float, events: Sequence[threading.Event]) -> bool:
    """Sleep up to ``seconds``; True if a stop event fired meanwhile."""
    end = time.monotonic() + seconds
    while True:
        if _stopped(events):
            return True
        remaining = end - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(remaining, _POLL_SECONDS))
