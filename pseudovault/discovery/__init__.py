"""Discovery oracle client: chunking, prompts, transports and parsing."""

from .chunking import Chunk, split_into_chunks, model_tier
from .client import DiscoveryClient
from .parser import parse_findings, normalize_category
from .transport import (
    InferenceRequest,
    InferenceResponse,
    InferenceTransport,
    HttpTransport,
    RelayTransport,
    NoopTransport,
    get_transport,
)

__all__ = [
    "Chunk",
    "split_into_chunks",
    "model_tier",
    "DiscoveryClient",
    "parse_findings",
    "normalize_category",
    "InferenceRequest",
    "InferenceResponse",
    "InferenceTransport",
    "HttpTransport",
    "RelayTransport",
    "NoopTransport",
    "get_transport",
]
