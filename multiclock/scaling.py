"""Tree-wide rate normalisation."""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from .exceptions import NumericalError
from .trees import NumberedTree


def compute_scale_factor(
    tree: NumberedTree,
    rates: np.ndarray,
    category_of: Callable[[int], int],
) -> float:
    """Reciprocal of the branch-length-weighted mean category rate.

    After scaling, ``sum(rate * length) / sum(length)`` over all non-root
    branches equals 1.
    """
    tree_rate = 0.0
    tree_time = 0.0
    for nr in tree.non_root_nodes():
        length = tree.branch_length(nr)
        tree_rate += float(rates[category_of(nr)]) * length
        tree_time += length

    if tree_time <= 0.0 or not math.isfinite(tree_time):
        raise NumericalError(f"Cannot normalise rates: total branch length is {tree_time}")
    if tree_rate <= 0.0 or not math.isfinite(tree_rate):
        raise NumericalError(f"Cannot normalise rates: length-weighted rate sum is {tree_rate}")
    return tree_time / tree_rate
