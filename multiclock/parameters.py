"""Sampled scalar/vector parameters with dirty tracking and store/restore."""

from __future__ import annotations

from typing import Sequence

import numpy as np


class Parameter:
    """A bounded vector of values owned by the sampler.

    Writes mark the touched element dirty. ``store`` snapshots the values and
    ``restore`` reverts to the snapshot; both leave the parameter clean.
    """

    dtype: type = float

    def __init__(
        self,
        values: float | Sequence[float],
        *,
        id: str | None = None,
        lower: float | None = None,
        upper: float | None = None,
    ):
        self.id = id
        arr = np.atleast_1d(np.asarray(values, dtype=self.dtype)).copy()
        if arr.ndim != 1 or arr.size == 0:
            raise ValueError("parameter values must be a non-empty 1D sequence")
        self._values = arr
        self._stored = arr.copy()
        self._dirty = np.zeros(arr.size, dtype=bool)
        self.lower = lower
        self.upper = upper
        for i, v in enumerate(arr):
            self._check_bounds(i, v)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, values={self._values.tolist()!r})"

    @property
    def dimension(self) -> int:
        return int(self._values.size)

    @property
    def values(self) -> np.ndarray:
        view = self._values.view()
        view.flags.writeable = False
        return view

    def value(self, i: int = 0):
        return self._values[i].item()

    def _check_bounds(self, i: int, v) -> None:
        if self.lower is not None and v < self.lower:
            raise ValueError(f"{self.id}[{i}] = {v} is below the lower bound {self.lower}")
        if self.upper is not None and v > self.upper:
            raise ValueError(f"{self.id}[{i}] = {v} is above the upper bound {self.upper}")

    def set_value(self, i: int, v) -> None:
        v = self.dtype(v)
        self._check_bounds(i, v)
        self._values[i] = v
        self._dirty[i] = True

    def assign(self, values: Sequence[float]) -> None:
        """Reinitialise values and dimension; resets the snapshot, leaves nothing dirty."""
        arr = np.atleast_1d(np.asarray(values, dtype=self.dtype)).copy()
        self._values = arr
        self._stored = arr.copy()
        self._dirty = np.zeros(arr.size, dtype=bool)

    def set_bounds(self, lower: float | None, upper: float | None) -> None:
        self.lower = lower
        self.upper = upper

    def set_dimension(self, dimension: int) -> None:
        """Resize, cycling existing values into the new slots."""
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        if dimension == self.dimension:
            return
        idx = np.arange(dimension) % self.dimension
        self.assign(self._values[idx])

    def is_dirty(self, i: int | None = None) -> bool:
        if i is None:
            return bool(self._dirty.any())
        return bool(self._dirty[i])

    def store(self) -> None:
        np.copyto(self._stored, self._values)
        self._dirty[:] = False

    def restore(self) -> None:
        self._values, self._stored = self._stored, self._values
        np.copyto(self._stored, self._values)
        self._dirty[:] = False


class RealParameter(Parameter):
    dtype = float


class IntegerParameter(Parameter):
    dtype = int
