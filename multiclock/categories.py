"""Discretisation of a rate distribution into representative category rates."""

from __future__ import annotations

import logging

import numpy as np

from .distributions import ParametricDistribution
from .exceptions import DistributionError, MultiClockError, NumericalError

logger = logging.getLogger(__name__)


def midpoint_quantiles(k: int) -> np.ndarray:
    """Probabilities ``(i + 0.5) / k`` for ``i`` in ``[0, k)``."""
    if k < 1:
        raise ValueError("k must be >= 1")
    return (np.arange(k, dtype=float) + 0.5) / float(k)


class RateCategoryTable:
    """K representative rates of ``distribution`` plus a shadow copy.

    The two buffers are swapped on ``restore`` rather than copied, so a
    rejected proposal costs no allocation.
    """

    def __init__(self, distribution: ParametricDistribution, k: int):
        self.distribution = distribution
        self._p = midpoint_quantiles(k)
        # construction failures surface as DistributionError
        self.rates = distribution.inverse_cdf(self._p)
        self.stored_rates = self.rates.copy()

        try:
            mean = distribution.mean()
        except (MultiClockError, ValueError, ArithmeticError):
            mean = None
        if mean is not None and abs(mean - 1.0) > 1e-6:
            logger.warning("Mean of the relaxed clock rate distribution is %g, not 1.0", mean)

    def __len__(self) -> int:
        return int(self.rates.size)

    def __getitem__(self, category: int) -> float:
        return float(self.rates[category])

    def rebuild(self) -> None:
        """Recompute the rates from the distribution's current parameters."""
        try:
            fresh = self.distribution.inverse_cdf(self._p)
        except DistributionError as exc:
            raise NumericalError(f"Cannot recompute rate categories: {exc}") from exc
        np.copyto(self.rates, fresh)

    def store(self) -> None:
        np.copyto(self.stored_rates, self.rates)

    def restore(self) -> None:
        self.rates, self.stored_rates = self.stored_rates, self.rates
