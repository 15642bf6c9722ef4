"""Branch rate models with separate clocks for declared clades."""

from __future__ import annotations

import logging
from typing import List, Sequence, TextIO, Union

import numpy as np
from Bio.Phylo.BaseTree import Clade

from .cache import DirtyFlags, RateCache
from .categories import RateCategoryTable
from .clades import CladeConstraint, build_ownership_map, membership_mask, owner_slot
from .distributions import LogNormal, ParametricDistribution
from .exceptions import ConfigurationError
from .parameters import IntegerParameter, RealParameter
from .scaling import compute_scale_factor
from .trees import NumberedTree

logger = logging.getLogger(__name__)

NodeRef = Union[int, Clade]


class BranchRateModel:
    """Per-branch rate multipliers for a fixed-topology tree.

    The sampler polls :meth:`requires_recalculation` once per proposal, then
    queries :meth:`rate_for_branch`, and finally calls :meth:`store` on
    acceptance of the previous state or :meth:`restore` on rejection.
    """

    def __init__(self, tree: NumberedTree):
        self.tree = tree

    def _nr(self, node: NodeRef) -> int:
        if isinstance(node, (int, np.integer)):
            return int(node)
        return self.tree.nr(node)

    def rate_for_branch(self, node: NodeRef) -> float:
        raise NotImplementedError

    def owner_id(self, nr: int) -> str | None:
        """Id of the clade owning the branch above ``nr``; None for background."""
        return None

    def branch_rates(self) -> np.ndarray:
        """Rates for every node number; the root entry is 1."""
        return np.array([self.rate_for_branch(nr) for nr in range(self.tree.node_count)], dtype=float)

    def requires_recalculation(self) -> bool:
        return False

    def store(self) -> None:
        pass

    def restore(self) -> None:
        pass


class _CladeClockModel(BranchRateModel):
    require_monophyly = True

    def __init__(self, tree: NumberedTree, clades: Sequence[CladeConstraint]):
        super().__init__(tree)
        self.clades: List[CladeConstraint] = list(clades)
        # unknown or repeated taxa fail here; topology is checked on first use
        for clade in self.clades:
            membership_mask(tree, clade)
        self._ownership: np.ndarray | None = None

    @property
    def ownership(self) -> np.ndarray:
        """Node number -> clade index, built on first use."""
        if self._ownership is None:
            self._ownership = build_ownership_map(
                self.tree,
                self.clades,
                require_monophyly=self.require_monophyly,
            )
        return self._ownership

    def owner_slot(self, nr: int) -> int:
        return owner_slot(self.ownership, nr, len(self.clades))

    def owner_id(self, nr: int) -> str | None:
        slot = self.owner_slot(nr)
        return self.clades[slot].id if slot < len(self.clades) else None


class MultiStrictClockModel(_CladeClockModel):
    """A strict clock per clade and a base rate for every other branch.

    Every clade must be flagged monophyletic and must form a clade of the
    tree.
    """

    def __init__(
        self,
        tree: NumberedTree,
        base_rate: RealParameter,
        clock_rates: Sequence[RealParameter],
        clades: Sequence[CladeConstraint],
    ):
        if len(clock_rates) != len(clades):
            raise ConfigurationError(
                f"Number of clock rates ({len(clock_rates)}) should equal number of clades ({len(clades)})"
            )
        if not clades:
            raise ConfigurationError("At least one clock rate/clade should be specified")
        for clade in clades:
            if not clade.monophyletic:
                raise ConfigurationError(f"Clade {clade.id} must be monophyletic")
        super().__init__(tree, clades)
        self.base_rate = base_rate
        self.clock_rates: List[RealParameter] = list(clock_rates)

    def rate_for_branch(self, node: NodeRef) -> float:
        nr = self._nr(node)
        slot = self.owner_slot(nr)
        if self.tree.is_root(nr):
            return 1.0
        if slot < len(self.clock_rates):
            return float(self.clock_rates[slot].value())
        return float(self.base_rate.value())

    def requires_recalculation(self) -> bool:
        return self.base_rate.is_dirty() or any(p.is_dirty() for p in self.clock_rates)


class _RelaxedCladeClockModel(_CladeClockModel):
    """Shared caching for the discretised relaxed clade clocks."""

    require_monophyly = False

    def __init__(
        self,
        tree: NumberedTree,
        clades: Sequence[CladeConstraint],
        *,
        distribution: ParametricDistribution,
        rate_categories: IntegerParameter,
        n_rates: int,
        mean_rate: RealParameter | None,
        normalize: bool,
    ):
        calibrations: List[CladeConstraint] = []
        for clade in clades:
            if clade in calibrations:
                continue
            if clade.monophyletic:
                calibrations.append(clade)
            else:
                logger.warning("Calibration that is not monophyletic found %s", clade.id)
        super().__init__(tree, calibrations)

        self.distribution = distribution
        self.rate_categories = rate_categories
        self.mean_rate = mean_rate if mean_rate is not None else RealParameter(1.0, id="meanRate")
        self.normalize = normalize
        self.flags = DirtyFlags()
        self.cache = RateCache(
            RateCategoryTable(distribution, n_rates),
            self.flags,
            normalize=normalize,
            scale_fn=self._compute_scale_factor,
        )

    @property
    def rates(self) -> np.ndarray:
        return self.cache.table.rates

    @property
    def scale_factor(self) -> float:
        return self.cache.scale_factor

    def _category(self, nr: int) -> int:
        raise NotImplementedError

    def _mean_rate(self, slot: int) -> float:
        raise NotImplementedError

    def _checked_category(self, nr: int) -> int:
        category = self._category(nr)
        if not 0 <= category < len(self.cache.table):
            raise ValueError(
                f"Rate category {category} of node {nr} is outside [0, {len(self.cache.table) - 1}]"
            )
        return category

    def _compute_scale_factor(self) -> float:
        return compute_scale_factor(self.tree, self.cache.table.rates, self._checked_category)

    def rate_for_branch(self, node: NodeRef) -> float:
        nr = self._nr(node)
        slot = self.owner_slot(nr)
        if self.tree.is_root(nr):
            return 1.0
        self.cache.refresh()
        category = self._checked_category(nr)
        return self.cache.table[category] * self.cache.scale_factor * self._mean_rate(slot)

    def requires_recalculation(self) -> bool:
        self.flags.begin_cycle()
        if self.distribution.is_dirty():
            self.flags.mark_table_dirty()
            return True
        # categories and mean rates are read directly at evaluation time
        if self.rate_categories.is_dirty():
            return True
        if self.mean_rate.is_dirty():
            return True
        return self.flags.recompute

    def store(self) -> None:
        self.cache.store()

    def restore(self) -> None:
        self.cache.restore()


class MultiRelaxedClockModel(_RelaxedCladeClockModel):
    """Discretised relaxed clock with a mean-rate multiplier per clade.

    Every non-root branch has its own rate category. ``mean_rate`` is resized
    to one slot per clade plus a final background ("root") slot.

    ``n_discrete_rates <= 0`` uses one category per branch.
    """

    def __init__(
        self,
        tree: NumberedTree,
        distribution: ParametricDistribution,
        rate_categories: IntegerParameter,
        clades: Sequence[CladeConstraint] = (),
        *,
        mean_rate: RealParameter | None = None,
        normalize: bool = False,
        n_discrete_rates: int = -1,
    ):
        n_branches = tree.node_count - 1
        n_rates = n_discrete_rates if n_discrete_rates > 0 else n_branches
        rate_categories.assign([i % n_rates for i in range(n_branches)])
        rate_categories.set_bounds(0, n_rates - 1)

        super().__init__(
            tree,
            clades,
            distribution=distribution,
            rate_categories=rate_categories,
            n_rates=n_rates,
            mean_rate=mean_rate,
            normalize=normalize,
        )

        self.mean_rate.set_dimension(len(self.clades) + 1)
        for i, clade in enumerate(self.clades):
            logger.info("%s%d = %s rate", self.mean_rate.id, i + 1, clade.id)
        logger.info("%s%d = root rate", self.mean_rate.id, self.mean_rate.dimension)

    def _category(self, nr: int) -> int:
        if nr == self.rate_categories.dimension:
            # the root's slot is free, so the node numbered past the end uses it
            nr = self.tree.root_nr
        return int(self.rate_categories.value(nr))

    def _mean_rate(self, slot: int) -> float:
        return float(self.mean_rate.value(slot))

    def column_names(self) -> List[str]:
        names = []
        for clade in self.clades:
            clade_id = clade.id
            if clade_id.endswith(".prior"):
                clade_id = clade_id[: -len(".prior")]
            names.append(f"{self.mean_rate.id}.{clade_id}")
        names.append(f"{self.mean_rate.id}.root")
        return names

    def init(self, out: TextIO) -> None:
        out.write("\t".join(self.column_names()))

    def log(self, sample: int, out: TextIO) -> None:
        for i in range(len(self.clades) + 1):
            out.write(f"{self.mean_rate.value(i)}\t")

    def close(self, out: TextIO) -> None:
        pass


class MultiRelaxedLogNormalClockModel(_RelaxedCladeClockModel):
    """Relaxed clade clock drawing one log-normal rate category per clade.

    The category table has one quantile per tree node, taken from a
    mean-one log-normal whose log-space standard deviation is ``stddev``.
    Every branch owned by a clade uses that clade's category; ``mean_rate`` is
    a single multiplier.
    """

    def __init__(
        self,
        tree: NumberedTree,
        stddev: RealParameter,
        rate_categories: IntegerParameter,
        clades: Sequence[CladeConstraint] = (),
        *,
        mean_rate: RealParameter | None = None,
        normalize: bool = False,
    ):
        self.stddev = stddev
        super().__init__(
            tree,
            clades,
            distribution=LogNormal(1.0, stddev),
            rate_categories=rate_categories,
            n_rates=tree.node_count,
            mean_rate=mean_rate,
            normalize=normalize,
        )
        rate_categories.assign(list(range(len(self.clades) + 1)))
        rate_categories.set_bounds(0, tree.node_count - 1)

    def _category(self, nr: int) -> int:
        return int(self.rate_categories.value(self.owner_slot(nr)))

    def _mean_rate(self, slot: int) -> float:
        return float(self.mean_rate.value())
