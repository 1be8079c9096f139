"""Inference transports - how a chat request reaches the discovery oracle."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json
import logging

import httpx

from ..config import DiscoveryConfig, get_config
from ..errors import OracleBusyError, OracleUnavailableError, ResponseFormatError

logger = logging.getLogger(__name__)

# Statuses meaning "try again later" (model loading, overloaded, rate limited)
BUSY_STATUSES = (429, 503)

OLLAMA = "ollama"
OPENAI = "openai"


@dataclass
class InferenceRequest:
    """One chat completion request."""
    model: str
    messages: List[Dict[str, str]]
    temperature: float = 0.1
    max_tokens: int = 2048
    timeout: float = 120.0


@dataclass
class InferenceResponse:
    """Assistant text returned by the oracle."""
    content: str
    status: int = 200
    raw: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# WIRE FORMAT
# =============================================================================

def build_payload(request: InferenceRequest, style: str) -> Dict[str, Any]:
    """Request body for the given wire style."""
    if style == OPENAI:
        return {
            "model": request.model,
            "messages": request.messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }
    return {
        "model": request.model,
        "messages": request.messages,
        "stream": False,
        "options": {
            "temperature": request.temperature,
            "num_predict": request.max_tokens,
        },
    }


def chat_path(style: str) -> str:
    return "/chat/completions" if style == OPENAI else "/api/chat"


def models_path(style: str) -> str:
    return "/models" if style == OPENAI else "/api/tags"


def extract_content(data: Any, style: str) -> str:
    """Pull the assistant text out of a response body."""
    try:
        if style == OPENAI:
            content = data["choices"][0]["message"]["content"]
        else:
            content = data["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise ResponseFormatError("Response has no message content")
    if not isinstance(content, str):
        raise ResponseFormatError("Response content is not text")
    return content


def check_status(status: int, detail: str = ""):
    """Raise the matching TransportError for a non-success status."""
    if status in BUSY_STATUSES:
        raise OracleBusyError(f"Oracle busy (status {status})", status=status)
    if status < 200 or status >= 300:
        message = f"Oracle returned status {status}"
        if detail:
            message = f"{message}: {detail[:200]}"
        raise OracleUnavailableError(message, status=status)


def _model_listed(data: Any, model: str, style: str) -> bool:
    if style == OPENAI:
        entries = data.get("data", []) if isinstance(data, dict) else []
        names = [m.get("id", "") for m in entries if isinstance(m, dict)]
    else:
        entries = data.get("models", []) if isinstance(data, dict) else []
        names = [m.get("name", "") for m in entries if isinstance(m, dict)]

    # Exact or partial match ("gemma3:1b" vs "gemma3:1b-it-q4")
    if any(model in name or name in model for name in names if name):
        return True
    logger.warning(f"Model {model} not found. Available: {names}")
    return False


# =============================================================================
# TRANSPORTS
# =============================================================================

class InferenceTransport(ABC):
    """Base interface: send a chat request, get the assistant text back."""

    @abstractmethod
    def send(self, request: InferenceRequest) -> InferenceResponse:
        """Send one request. Raises TransportError subclasses on failure."""
        pass

    @abstractmethod
    def is_available(self, model: str) -> bool:
        """Check if the oracle is reachable and serves ``model``."""
        pass

    def close(self):
        pass


class HttpTransport(InferenceTransport):
    """Direct HTTP call to Ollama (/api/chat) or an OpenAI-compatible API."""

    def __init__(
        self,
        url: str,
        style: str = OLLAMA,
        api_key: str = "",
        client: Optional[httpx.Client] = None,
    ):
        self.url = url.rstrip("/")
        self.style = style
        self.api_key = api_key
        self._client = client or httpx.Client()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send(self, request: InferenceRequest) -> InferenceResponse:
        try:
            response = self._client.post(
                f"{self.url}{chat_path(self.style)}",
                headers=self._headers(),
                json=build_payload(request, self.style),
                timeout=request.timeout,
            )
        except httpx.TimeoutException as e:
            raise OracleUnavailableError(f"Oracle timed out: {e}", status=408)
        except httpx.HTTPError as e:
            raise OracleUnavailableError(f"Oracle unreachable: {e}")

        check_status(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            raise ResponseFormatError("Response body is not JSON", status=response.status_code)

        return InferenceResponse(
            content=extract_content(data, self.style),
            status=response.status_code,
            raw=data,
        )

    def is_available(self, model: str) -> bool:
        try:
            response = self._client.get(
                f"{self.url}{models_path(self.style)}",
                headers=self._headers(),
                timeout=5.0,
            )
            response.raise_for_status()
            return _model_listed(response.json(), model, self.style)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Oracle not available at {self.url}: {e}")
            return False

    def close(self):
        self._client.close()


class RelayTransport(InferenceTransport):
    """
    Call the oracle through an intermediary process.

    The relay receives ``{"type": "OLLAMA_FETCH", "url": ..., "options": ...}``,
    performs the request itself and answers with
    ``{"success", "ok", "status", "data", "error"}``.
    """

    def __init__(
        self,
        relay_url: str,
        target_url: str,
        style: str = OLLAMA,
        client: Optional[httpx.Client] = None,
    ):
        self.relay_url = relay_url
        self.target_url = target_url.rstrip("/")
        self.style = style
        self._client = client or httpx.Client()

    def _relay(self, url: str, options: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        envelope = {"type": "OLLAMA_FETCH", "url": url, "options": options}
        try:
            response = self._client.post(self.relay_url, json=envelope, timeout=timeout)
        except httpx.TimeoutException as e:
            raise OracleUnavailableError(f"Relay timed out: {e}", status=408)
        except httpx.HTTPError as e:
            raise OracleUnavailableError(f"Relay unreachable: {e}")

        check_status(response.status_code, response.text)

        try:
            result = response.json()
        except ValueError:
            raise ResponseFormatError("Relay answer is not JSON", status=response.status_code)
        if not isinstance(result, dict):
            raise ResponseFormatError("Relay answer is not an object")

        if not result.get("success"):
            # Relay-side failure: TIMEOUT (408), target down, ...
            status = result.get("status") or 503
            check_status(status, str(result.get("error") or "relay error"))
            raise OracleUnavailableError(f"Relay failed: {result.get('error')}", status=status)

        status = result.get("status") or 200
        if not result.get("ok", True):
            check_status(status if not 200 <= status < 300 else 502, json.dumps(result.get("data"))[:200])
        return result

    def send(self, request: InferenceRequest) -> InferenceResponse:
        options = {
            "method": "POST",
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(build_payload(request, self.style)),
        }
        result = self._relay(f"{self.target_url}{chat_path(self.style)}", options, request.timeout)
        data = result.get("data")
        return InferenceResponse(
            content=extract_content(data, self.style),
            status=result.get("status") or 200,
            raw=data if isinstance(data, dict) else {},
        )

    def is_available(self, model: str) -> bool:
        try:
            result = self._relay(
                f"{self.target_url}{models_path(self.style)}",
                {"method": "GET"},
                timeout=5.0,
            )
        except (OracleUnavailableError, OracleBusyError, ResponseFormatError) as e:
            logger.debug(f"Oracle not available through relay: {e}")
            return False
        return _model_listed(result.get("data"), model, self.style)

    def close(self):
        self._client.close()


class NoopTransport(InferenceTransport):
    """Discovery disabled - every chunk comes back empty."""

    def send(self, request: InferenceRequest) -> InferenceResponse:
        return InferenceResponse(content="[]")

    def is_available(self, model: str) -> bool:
        return True


def get_transport(config: Optional[DiscoveryConfig] = None) -> InferenceTransport:
    """Factory function to get the transport for the configured provider."""
    if config is None:
        config = get_config().discovery

    if config.provider == "none":
        return NoopTransport()

    if config.provider == "remote":
        return HttpTransport(
            url=config.remote.url,
            style=OPENAI,
            api_key=config.remote.api_key,
        )

    if config.provider == "relay":
        return RelayTransport(
            relay_url=config.relay.url,
            target_url=config.relay.target,
        )

    # Default to Ollama
    return HttpTransport(url=config.ollama.url, style=OLLAMA)
