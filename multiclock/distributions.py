"""Continuous rate distributions backed by scipy.stats."""

from __future__ import annotations

import math
from typing import Dict, Union

import numpy as np
from scipy import stats

from .exceptions import DistributionError
from .parameters import RealParameter

Value = Union[float, RealParameter]


def _as_float(value: Value) -> float:
    if isinstance(value, RealParameter):
        return float(value.value())
    return float(value)


class ParametricDistribution:
    """A distribution whose parameters may be sampled ``RealParameter``s."""

    def __init__(self, **parameters: Value):
        self.parameters: Dict[str, Value] = dict(parameters)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={_as_float(v)!r}" for k, v in self.parameters.items())
        return f"{type(self).__name__}({args})"

    def parameter_values(self) -> Dict[str, float]:
        return {name: _as_float(v) for name, v in self.parameters.items()}

    def is_dirty(self) -> bool:
        return any(isinstance(v, RealParameter) and v.is_dirty() for v in self.parameters.values())

    def frozen(self):
        raise NotImplementedError

    def inverse_cdf(self, p) -> np.ndarray:
        """Quantiles at probabilities ``p``; fails on any non-finite result."""
        p = np.asarray(p, dtype=float)
        try:
            with np.errstate(all="ignore"):
                q = np.asarray(self.frozen().ppf(p), dtype=float)
        except DistributionError:
            raise
        except (ValueError, ArithmeticError) as exc:
            raise DistributionError(f"inverse CDF failed for {self!r}: {exc}") from exc
        if not np.all(np.isfinite(q)):
            raise DistributionError(f"inverse CDF of {self!r} is undefined at some of p={p.tolist()}")
        return q

    def mean(self) -> float:
        return float(self.frozen().mean())


class LogNormal(ParametricDistribution):
    """Log-normal with log-space standard deviation ``stddev``.

    With ``mean_in_real_space`` (the default) ``mean`` is the mean of the
    distribution itself, i.e. the log-space location is
    ``log(mean) - stddev**2 / 2``.
    """

    def __init__(self, mean: Value = 1.0, stddev: Value = 0.33, *, mean_in_real_space: bool = True):
        super().__init__(mean=mean, stddev=stddev)
        self.mean_in_real_space = mean_in_real_space

    def frozen(self):
        m = _as_float(self.parameters["mean"])
        s = _as_float(self.parameters["stddev"])
        if self.mean_in_real_space:
            if m <= 0:
                raise DistributionError(f"real-space mean must be > 0, got {m}")
            mu = math.log(m) - 0.5 * s * s
        else:
            mu = m
        return stats.lognorm(s=s, scale=math.exp(mu))

    def inverse_cdf(self, p) -> np.ndarray:
        if _as_float(self.parameters["stddev"]) <= 0:
            raise DistributionError(f"stddev of {self!r} must be > 0")
        return super().inverse_cdf(p)


class Gamma(ParametricDistribution):
    def __init__(self, shape: Value, scale: Value):
        super().__init__(shape=shape, scale=scale)

    def frozen(self):
        return stats.gamma(a=_as_float(self.parameters["shape"]), scale=_as_float(self.parameters["scale"]))


class Exponential(ParametricDistribution):
    def __init__(self, mean: Value = 1.0):
        super().__init__(mean=mean)

    def frozen(self):
        return stats.expon(scale=_as_float(self.parameters["mean"]))
