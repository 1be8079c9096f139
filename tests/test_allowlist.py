"""Tests for the noise filter."""

import pytest

from pseudovault.allowlist import filter_noise, get_noise_terms, is_noise
from pseudovault.types import Category, Finding


@pytest.mark.parametrize("value", [
    None, "", " ", "x", "N/A", "null", "Sconosciuto", "JSON", "oggi",
    "12:30", "9.15", "8 pm", "<nome>", "[...]", "***", "[FULL_NAME_1]",
    " ".join(["parola"] * 13),
])
def test_noise(value):
    assert is_noise(value)


@pytest.mark.parametrize("value", [
    "Mario Rossi", "mario@example.com", "RSSMRA85T10A562S", "15/03/1985", "Milano", "IT",
])
def test_not_noise(value):
    assert not is_noise(value)


def test_word_limit_is_configurable():
    sentence = " ".join(["parola"] * 13)
    assert not is_noise(sentence, max_words=20)


def test_filter_noise_keeps_order():
    findings = [
        Finding("Mario Rossi", Category.FULL_NAME),
        Finding("n.d.", Category.OTHER),
        Finding("Milano", Category.PLACE_OF_BIRTH),
    ]
    assert [f.value for f in filter_noise(findings)] == ["Mario Rossi", "Milano"]


def test_noise_terms_copy():
    terms = get_noise_terms()
    terms.add("mario")
    assert not is_noise("mario")
