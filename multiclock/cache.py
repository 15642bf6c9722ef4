"""Dirty flags and the store/restore cache around the category table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .categories import RateCategoryTable
from .exceptions import MultiClockError


@dataclass
class DirtyFlags:
    """Staleness of the cached category table and scale factor.

    ``recompute`` covers the table, ``renormalize`` the scale factor; they are
    independent. Both start set so the first query builds everything.
    """

    recompute: bool = True
    renormalize: bool = True

    def begin_cycle(self) -> None:
        """Start of a proposal: the table is presumed clean, the scale is not."""
        self.recompute = False
        self.renormalize = True

    def mark_table_dirty(self) -> None:
        self.recompute = True

    def mark_scale_dirty(self) -> None:
        self.renormalize = True

    def take_recompute(self) -> bool:
        """Return ``recompute`` and clear it."""
        flag, self.recompute = self.recompute, False
        return flag

    def take_renormalize(self) -> bool:
        """Return ``renormalize`` and clear it."""
        flag, self.renormalize = self.renormalize, False
        return flag


class RateCache:
    """Lazily refreshed category table and scale factor with a rollback copy.

    ``scale_fn`` computes the scale factor from the current table; it is only
    called when ``normalize`` is on, at most once per cycle. A failed refresh
    leaves its flag set so the next query tries again.
    """

    def __init__(
        self,
        table: RateCategoryTable,
        flags: DirtyFlags,
        *,
        normalize: bool,
        scale_fn: Callable[[], float],
    ):
        self.table = table
        self.flags = flags
        self.normalize = normalize
        self._scale_fn = scale_fn
        self.scale_factor = 1.0
        self.stored_scale_factor = 1.0

    def refresh(self) -> None:
        if self.flags.take_recompute():
            try:
                self.table.rebuild()
            except MultiClockError:
                self.flags.mark_table_dirty()
                raise
        if self.flags.take_renormalize() and self.normalize:
            try:
                self.scale_factor = self._scale_fn()
            except (MultiClockError, ValueError):
                self.flags.mark_scale_dirty()
                raise

    def store(self) -> None:
        self.table.store()
        self.stored_scale_factor = self.scale_factor

    def restore(self) -> None:
        self.table.restore()
        self.scale_factor, self.stored_scale_factor = self.stored_scale_factor, self.scale_factor
