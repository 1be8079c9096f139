"""Tests for the discovery client and inference transports."""

import json
import threading
import time

import httpx
import pytest

from pseudovault.config import DiscoveryConfig, RemoteConfig
from pseudovault.discovery.client import DiscoveryClient
from pseudovault.discovery.transport import (
    HttpTransport,
    InferenceRequest,
    NoopTransport,
    RelayTransport,
    get_transport,
)
from pseudovault.errors import OracleBusyError, OracleUnavailableError, ResponseFormatError
from pseudovault.types import Candidate, Category, ConfidenceTier, Finding

from conftest import FakeTransport, chunk_text

NAME_JSON = '[{"value": "Mario Rossi", "category": "FULL_NAME"}]'


def busy():
    return OracleBusyError("Oracle busy (status 503)", status=503)


def values(findings):
    return [f.value for f in findings]


# =============================================================================
# DISCOVER
# =============================================================================

def test_discover_sends_hints(fast_discovery_config):
    transport = FakeTransport([NAME_JSON])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    hint = Candidate("Mario Rossi", Category.FULL_NAME, ConfidenceTier.MEDIUM, start=8, length=11)

    findings = client.discover("Il sig. Mario Rossi scrive", candidates=[hint])

    assert [(f.value, f.category) for f in findings] == [("Mario Rossi", Category.FULL_NAME)]
    request = transport.requests[0]
    assert request.model == "gemma3:1b"
    assert "- Mario Rossi (FULL_NAME)" in request.messages[-1]["content"]
    assert chunk_text(request).startswith("Il sig. Mario Rossi scrive")


def test_hints_outside_the_chunk_are_not_sent(fast_discovery_config):
    transport = FakeTransport(["[]"])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    hint = Candidate("Anna Bianchi", Category.FULL_NAME, ConfidenceTier.MEDIUM, start=0, length=12)

    client.discover("Il sig. Mario Rossi scrive", candidates=[hint])

    assert "(none)" in transport.requests[0].messages[-1]["content"]


def test_blank_text_makes_no_calls(fast_discovery_config):
    transport = FakeTransport([NAME_JSON])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.discover("   ") == []
    assert transport.calls == 0


def test_busy_is_retried(fast_discovery_config):
    transport = FakeTransport([busy(), busy(), NAME_JSON])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert values(client.discover("Mario Rossi")) == ["Mario Rossi"]
    assert transport.calls == 3


def test_busy_retries_exhausted(fast_discovery_config):
    transport = FakeTransport([busy()])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.discover("Mario Rossi") == []
    assert transport.calls == 1 + fast_discovery_config.busy_retries


def test_failure_is_retried_once(fast_discovery_config):
    transport = FakeTransport([OracleUnavailableError("connection refused")])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.discover("Mario Rossi") == []
    assert transport.calls == 2


def test_failure_then_success(fast_discovery_config):
    transport = FakeTransport([ResponseFormatError("no content"), NAME_JSON])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert values(client.discover("Mario Rossi")) == ["Mario Rossi"]
    assert transport.calls == 2


def test_unparseable_answer_gives_no_findings(fast_discovery_config):
    transport = FakeTransport(["Mi dispiace, non posso aiutarti."])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.discover("Mario Rossi") == []


def small_chunks(**overrides):
    settings = dict(
        backoff_seconds=0.0,
        light_chunk_chars=50,
        heavy_chunk_chars=50,
        chunk_overlap=0,
        max_workers=4,
    )
    settings.update(overrides)
    return DiscoveryConfig(**settings)


def test_findings_keep_chunk_order():
    text = " ".join(f"Word{i:05d}" for i in range(20))

    def answer(request):
        first = chunk_text(request).split()[0]
        if first == "Word00000":
            time.sleep(0.2)
        return json.dumps([{"value": first, "category": "OTHER"}])

    client = DiscoveryClient(small_chunks(), transport=FakeTransport(answer))
    assert values(client.discover(text)) == ["Word00000", "Word00005", "Word00010", "Word00015"]


def test_findings_are_unique_across_chunks():
    text = " ".join(["Mario Rossi"] * 20)
    client = DiscoveryClient(small_chunks(), transport=FakeTransport([NAME_JSON]))
    assert values(client.discover(text)) == ["Mario Rossi"]


def test_unexpected_error_loses_only_its_chunk():
    text = " ".join(f"Word{i:05d}" for i in range(10))

    def answer(request):
        first = chunk_text(request).split()[0]
        if first == "Word00000":
            raise RuntimeError("boom")
        return json.dumps([{"value": first, "category": "OTHER"}])

    client = DiscoveryClient(small_chunks(), transport=FakeTransport(answer))
    assert values(client.discover(text)) == ["Word00005"]


def test_overall_deadline():
    config = DiscoveryConfig(timeout=0.05, busy_retries=0, backoff_seconds=0.0)

    def slow(request):
        time.sleep(0.5)
        return NAME_JSON

    client = DiscoveryClient(config, transport=FakeTransport(slow))
    started = time.monotonic()
    assert client.discover("Mario Rossi") == []
    assert time.monotonic() - started < 0.5


def test_cancelled_before_start(fast_discovery_config):
    transport = FakeTransport([NAME_JSON])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    cancel = threading.Event()
    cancel.set()

    assert client.discover("Mario Rossi", cancel_event=cancel) == []
    assert transport.calls == 0


def test_cancel_interrupts_backoff():
    config = DiscoveryConfig(backoff_seconds=5.0)
    transport = FakeTransport([busy()])
    client = DiscoveryClient(config, transport=transport)
    cancel = threading.Event()
    timer = threading.Timer(0.2, cancel.set)
    timer.start()

    started = time.monotonic()
    try:
        assert client.discover("Mario Rossi", cancel_event=cancel) == []
    finally:
        timer.cancel()
    assert time.monotonic() - started < 2.0
    assert transport.calls == 1


def test_answer_arriving_after_cancel_is_dropped(fast_discovery_config):
    cancel = threading.Event()

    def answer_then_cancel(request):
        cancel.set()
        return NAME_JSON

    transport = FakeTransport(answer_then_cancel)
    client = DiscoveryClient(fast_discovery_config, transport=transport)

    assert client.discover("Mario Rossi", cancel_event=cancel) == []
    assert transport.calls == 1


def test_cancel_returns_while_a_chunk_is_in_flight(fast_discovery_config):
    cancel = threading.Event()

    def slow(request):
        time.sleep(1.0)
        return NAME_JSON

    client = DiscoveryClient(fast_discovery_config, transport=FakeTransport(slow))
    timer = threading.Timer(0.1, cancel.set)
    timer.start()

    started = time.monotonic()
    try:
        assert client.discover("Mario Rossi", cancel_event=cancel) == []
    finally:
        timer.cancel()
    assert time.monotonic() - started < 0.8


def test_noop_provider():
    client = DiscoveryClient(DiscoveryConfig(provider="none"))
    assert isinstance(client.transport, NoopTransport)
    assert client.discover("Il sig. Mario Rossi") == []
    assert client.is_available()


def test_chunk_size_follows_tier(fast_discovery_config):
    client = DiscoveryClient(fast_discovery_config, transport=FakeTransport(["[]"]))
    assert client.chunk_size("gemma3:1b") == fast_discovery_config.light_chunk_chars
    assert client.chunk_size("llama3.1:70b") == fast_discovery_config.heavy_chunk_chars


# =============================================================================
# SURFACE FORMS
# =============================================================================

FINDINGS = [
    Finding("Mario Rossi", Category.FULL_NAME),
    Finding("Sig. Rossi", Category.FULL_NAME),
]


def test_surface_forms_heavy_model(fast_discovery_config):
    transport = FakeTransport(['{"Sig. Rossi": "Mario Rossi"}'])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.unify_surface_forms(FINDINGS, model_id="llama3.1:70b") == {"Sig. Rossi": "Mario Rossi"}
    assert '"Sig. Rossi"' in transport.requests[0].messages[-1]["content"]


def test_surface_forms_skipped_for_light_model(fast_discovery_config):
    transport = FakeTransport(['{"Sig. Rossi": "Mario Rossi"}'])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.unify_surface_forms(FINDINGS) == {}
    assert transport.calls == 0


def test_surface_forms_skipped_when_disabled_or_single():
    config = DiscoveryConfig(backoff_seconds=0.0, unify_surface_forms=False)
    transport = FakeTransport(['{"Sig. Rossi": "Mario Rossi"}'])
    assert DiscoveryClient(config, transport=transport).unify_surface_forms(FINDINGS, "llama3.1:70b") == {}

    enabled = DiscoveryClient(DiscoveryConfig(backoff_seconds=0.0), transport=transport)
    assert enabled.unify_surface_forms(FINDINGS[:1], "llama3.1:70b") == {}
    assert transport.calls == 0


def test_surface_forms_failure_gives_empty_mapping(fast_discovery_config):
    transport = FakeTransport([OracleUnavailableError("down")])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.unify_surface_forms(FINDINGS, model_id="llama3.1:70b") == {}


def test_surface_forms_unexpected_error_gives_empty_mapping(fast_discovery_config):
    transport = FakeTransport([RuntimeError("transport bug")])
    client = DiscoveryClient(fast_discovery_config, transport=transport)
    assert client.unify_surface_forms(FINDINGS, model_id="llama3.1:70b") == {}


# =============================================================================
# HTTP TRANSPORT
# =============================================================================

REQUEST = InferenceRequest(model="gemma3:1b", messages=[{"role": "user", "content": "ciao"}])


def mock_client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_ollama_request_shape():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "[]"}})

    transport = HttpTransport("http://oracle:11434/", client=mock_client(handler))
    response = transport.send(REQUEST)

    assert response.content == "[]"
    assert seen["path"] == "/api/chat"
    assert seen["body"]["model"] == "gemma3:1b"
    assert seen["body"]["stream"] is False
    assert seen["body"]["options"] == {"temperature": 0.1, "num_predict": 2048}


@pytest.mark.parametrize("status,error", [
    (503, OracleBusyError),
    (429, OracleBusyError),
    (500, OracleUnavailableError),
    (404, OracleUnavailableError),
])
def test_http_status_errors(status, error):
    transport = HttpTransport(
        "http://oracle:11434",
        client=mock_client(lambda request: httpx.Response(status, text="nope")),
    )
    with pytest.raises(error) as info:
        transport.send(REQUEST)
    assert info.value.status == status


@pytest.mark.parametrize("response", [
    httpx.Response(200, json={"done": True}),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"message": {"content": None}}),
])
def test_malformed_body(response):
    transport = HttpTransport("http://oracle:11434", client=mock_client(lambda request: response))
    with pytest.raises(ResponseFormatError):
        transport.send(REQUEST)


def test_openai_request_shape():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "[]"}}]})

    transport = HttpTransport(
        "https://api.example.com/v1",
        style="openai",
        api_key="sk-test",
        client=mock_client(handler),
    )
    assert transport.send(REQUEST).content == "[]"
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["max_tokens"] == 2048


def test_network_errors():
    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(OracleUnavailableError):
        HttpTransport("http://oracle:11434", client=mock_client(refused)).send(REQUEST)

    with pytest.raises(OracleUnavailableError) as info:
        HttpTransport("http://oracle:11434", client=mock_client(slow)).send(REQUEST)
    assert info.value.status == 408

    assert not HttpTransport("http://oracle:11434", client=mock_client(refused)).is_available("gemma3:1b")


def test_is_available_checks_model_list():
    def handler(request):
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "gemma3:1b-it-q4"}]})

    transport = HttpTransport("http://oracle:11434", client=mock_client(handler))
    assert transport.is_available("gemma3:1b")
    assert not transport.is_available("llama3.1:70b")


# =============================================================================
# RELAY TRANSPORT
# =============================================================================

def relay(answer, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(200, json=answer)

    return RelayTransport(
        "http://localhost:18790/relay",
        "http://localhost:11434",
        client=mock_client(handler),
    )


def test_relay_envelope():
    seen = []
    transport = relay(
        {"success": True, "ok": True, "status": 200, "data": {"message": {"content": "[]"}}},
        seen,
    )
    assert transport.send(REQUEST).content == "[]"

    envelope = seen[0]
    assert envelope["type"] == "OLLAMA_FETCH"
    assert envelope["url"] == "http://localhost:11434/api/chat"
    assert envelope["options"]["method"] == "POST"
    assert json.loads(envelope["options"]["body"])["model"] == "gemma3:1b"


def test_relay_failure():
    transport = relay({"success": False, "status": 408, "error": "TIMEOUT"})
    with pytest.raises(OracleUnavailableError) as info:
        transport.send(REQUEST)
    assert info.value.status == 408


def test_relay_busy_target():
    transport = relay({"success": True, "ok": False, "status": 503, "data": {}})
    with pytest.raises(OracleBusyError):
        transport.send(REQUEST)


def test_relay_not_ok_with_success_status():
    transport = relay({"success": True, "ok": False, "status": 200, "data": {}})
    with pytest.raises(OracleUnavailableError) as info:
        transport.send(REQUEST)
    assert info.value.status == 502


def test_relay_is_available():
    transport = relay({"success": True, "ok": True, "status": 200, "data": {"models": [{"name": "gemma3:1b"}]}})
    assert transport.is_available("gemma3:1b")
    assert not relay({"success": False, "error": "down"}).is_available("gemma3:1b")


# =============================================================================
# FACTORY
# =============================================================================

def test_get_transport():
    assert isinstance(get_transport(DiscoveryConfig(provider="none")), NoopTransport)

    ollama = get_transport(DiscoveryConfig(provider="ollama"))
    assert isinstance(ollama, HttpTransport)
    assert ollama.style == "ollama"
    assert ollama.url == "http://localhost:11434"
    ollama.close()

    remote = get_transport(DiscoveryConfig(
        provider="remote",
        remote=RemoteConfig(url="https://api.example.com/v1", api_key="sk-test"),
    ))
    assert isinstance(remote, HttpTransport)
    assert remote.style == "openai"
    assert remote.api_key == "sk-test"
    remote.close()

    via_relay = get_transport(DiscoveryConfig(provider="relay"))
    assert isinstance(via_relay, RelayTransport)
    assert via_relay.target_url == "http://localhost:11434"
    via_relay.close()
