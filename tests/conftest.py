"""Shared fixtures: scripted inference transports and fast configs."""

import threading
from typing import Callable, List, Union

import pytest

from pseudovault.config import Config, DiscoveryConfig
from pseudovault.discovery.transport import InferenceRequest, InferenceResponse, InferenceTransport


class FakeTransport(InferenceTransport):
    """Transport answering from a script.

    ``script`` is either a list consumed one item per call (the last item
    repeats) or a callable taking the request. Items are response strings
    or exceptions to raise.
    """

    def __init__(self, script: Union[List, Callable[[InferenceRequest], Union[str, Exception]]]):
        self.script = script
        self.requests: List[InferenceRequest] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def send(self, request: InferenceRequest) -> InferenceResponse:
        with self._lock:
            self.requests.append(request)
            index = len(self.requests) - 1
        if callable(self.script):
            item = self.script(request)
        else:
            item = self.script[min(index, len(self.script) - 1)]
        if isinstance(item, Exception):
            raise item
        return InferenceResponse(content=item)

    def is_available(self, model: str) -> bool:
        return True


def chunk_text(request: InferenceRequest) -> str:
    """The document text embedded in a discovery request."""
    return request.messages[-1]["content"].split("Text:\n", 1)[1]


@pytest.fixture
def fast_discovery_config():
    """Discovery config with no backoff delay."""
    return DiscoveryConfig(backoff_seconds=0.0)


@pytest.fixture
def fast_config(fast_discovery_config):
    config = Config()
    config.discovery = fast_discovery_config
    return config
