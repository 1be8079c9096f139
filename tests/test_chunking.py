"""Tests for chunking and model tier classification."""

import pytest

from pseudovault.config import DiscoveryConfig
from pseudovault.discovery.chunking import HEAVY, LIGHT, model_tier, split_into_chunks

MARKERS = DiscoveryConfig().light_model_markers


# =============================================================================
# SPLITTING
# =============================================================================

def test_empty_text_has_no_chunks():
    assert split_into_chunks("", 100) == []


def test_short_text_is_one_chunk():
    chunks = split_into_chunks("Mario Rossi", 100, overlap=10)
    assert len(chunks) == 1
    assert chunks[0].start == 0
    assert chunks[0].text == "Mario Rossi"


def test_chunks_overlap_and_cover_the_text():
    text = "word " * 1000
    chunks = split_into_chunks(text, 1000, overlap=100)

    assert chunks[0].start == 0
    assert chunks[-1].end == len(text)
    for chunk in chunks:
        assert len(chunk.text) <= 1000
        assert text[chunk.start:chunk.end] == chunk.text
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start < prev.end
        assert prev.end - nxt.start <= 100
    assert [c.index for c in chunks] == list(range(len(chunks)))


def test_boundaries_fall_on_whitespace():
    text = "word " * 1000
    chunks = split_into_chunks(text, 1000, overlap=100)
    for chunk in chunks[:-1]:
        assert chunk.text[-1].isspace()


def test_boundary_moves_back_to_break():
    text = "a" * 950 + " " + "b" * 200
    chunks = split_into_chunks(text, 1000)
    assert chunks[0].text == "a" * 950 + " "
    assert chunks[1].start == 951


def test_hard_cut_without_whitespace():
    chunks = split_into_chunks("a" * 2500, 1000)
    assert [c.start for c in chunks] == [0, 1000, 2000]
    assert len(chunks[-1].text) == 500


@pytest.mark.parametrize("max_chars,overlap", [(0, 0), (100, 100), (100, 150), (100, -1)])
def test_invalid_arguments(max_chars, overlap):
    with pytest.raises(ValueError):
        split_into_chunks("testo", max_chars, overlap)


# =============================================================================
# MODEL TIER
# =============================================================================

@pytest.mark.parametrize("model_id,provider,expected", [
    ("gemma3:1b", "ollama", LIGHT),
    ("qwen2.5:3b", "relay", LIGHT),
    ("Phi3-Mini", "ollama", LIGHT),
    ("llama3.1:70b", "ollama", HEAVY),
    ("gpt-4o-mini", "remote", HEAVY),
    ("", "ollama", HEAVY),
    (None, "ollama", HEAVY),
])
def test_model_tier(model_id, provider, expected):
    assert model_tier(model_id, provider, MARKERS) == expected
