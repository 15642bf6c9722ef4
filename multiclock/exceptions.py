"""Error types raised by the clade clock models."""

from __future__ import annotations


class MultiClockError(Exception):
    """Base class for all multiclock errors."""


class ConfigurationError(MultiClockError, ValueError):
    """Invalid clade, tree or parameter setup; raised before any sampling."""


class DistributionError(MultiClockError, ValueError):
    """The inverse CDF is undefined for the configured distribution."""


class NumericalError(MultiClockError, RuntimeError):
    """Cached rates could not be recomputed; the model state is unusable."""
