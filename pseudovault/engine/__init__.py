"""Deterministic detection and finding unification."""

from .scanner import PatternScanner
from .unifier import unify, apply_surface_forms, specificity

__all__ = ["PatternScanner", "unify", "apply_surface_forms", "specificity"]
