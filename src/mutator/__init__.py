"""Mutation rules producing JSON Patch operations."""

from .rules import MUTATION_RULES, mutate

__all__ = ["MUTATION_RULES", "mutate"]
