"""Backward-compatibility scoring for version pairs."""

from .usecases.aggregator import CompatibilityAggregator, truncate_percent

__all__ = ["CompatibilityAggregator", "truncate_percent"]
