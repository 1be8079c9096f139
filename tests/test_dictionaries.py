"""Tests for the bundled name dictionaries."""

from pseudovault.dictionaries import (
    get_dictionary_status,
    load_dictionary,
    load_first_names,
    load_surnames,
)


def test_load_dictionary_skips_comments_and_blanks(tmp_path):
    path = tmp_path / "names.txt"
    path.write_text("# nomi\nMario\n\n  Anna  \n", encoding="utf-8")
    assert load_dictionary(path) == frozenset({"mario", "anna"})


def test_missing_dictionary_is_empty(tmp_path):
    assert load_dictionary(tmp_path / "missing.txt") == frozenset()


def test_bundled_dictionaries():
    assert "mario" in load_first_names()
    assert "rossi" in load_surnames()
    status = get_dictionary_status()
    assert status["first_names"] == len(load_first_names())
    assert status["surnames"] > 0
