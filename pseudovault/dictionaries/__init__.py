"""Bundled lookup dictionaries."""

from .loader import (
    load_dictionary,
    load_first_names,
    load_surnames,
    get_dictionary_status,
)

__all__ = [
    "load_dictionary",
    "load_first_names",
    "load_surnames",
    "get_dictionary_status",
]
