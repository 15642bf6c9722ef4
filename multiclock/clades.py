"""Clade constraints and the partition of tree branches among them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .exceptions import ConfigurationError
from .trees import NumberedTree, Taxon

logger = logging.getLogger(__name__)

NO_CLADE = -1


@dataclass(frozen=True)
class CladeConstraint:
    """A named taxon set asserted to form one clade.

    ``taxa=None`` means every taxon in the tree.
    """

    id: str
    taxa: Tuple[Taxon, ...] | None = None
    monophyletic: bool = True

    def __post_init__(self):
        if self.taxa is not None and not isinstance(self.taxa, tuple):
            object.__setattr__(self, "taxa", tuple(self.taxa))


def membership_mask(tree: NumberedTree, clade: CladeConstraint) -> tuple[np.ndarray, int]:
    """Return a per-leaf membership mask and the number of declared taxa."""
    names = tree.taxa_names
    mask = np.zeros(len(names), dtype=bool)
    if clade.taxa is None:
        mask[:] = True
        return mask, len(names)
    if not clade.taxa:
        raise ConfigurationError(f"Clade {clade.id} declares no taxa")
    index = {name: i for i, name in enumerate(names)}
    for taxon in clade.taxa:
        i = index.get(str(taxon))
        if i is None:
            raise ConfigurationError(f"Cannot find taxon {taxon} of clade {clade.id} in the tree")
        if mask[i]:
            raise ConfigurationError(
                f"Taxon {taxon} is defined multiple times in clade {clade.id}, while taxa should be unique"
            )
        mask[i] = True
    return mask, len(clade.taxa)


def _collect(
    tree: NumberedTree,
    members: np.ndarray,
    target: int,
) -> tuple[List[int], List[Tuple[int, int]]]:
    """Post-order scan over the whole tree.

    Returns the collected node numbers and the ``(node, descendant leaves)``
    of each completed clade. Once the clade is complete the match count
    becomes ``target + 1`` so no ancestor is collected.
    """
    matches = np.zeros(tree.node_count, dtype=int)
    leaves = np.zeros(tree.node_count, dtype=int)
    found: List[int] = []
    mrca: List[Tuple[int, int]] = []

    for nr in tree.postorder():
        if tree.is_leaf(nr):
            leaves[nr] = 1
            if members[nr]:
                found.append(nr)
                matches[nr] = 1
                if target == 1:
                    mrca.append((nr, 1))
                    matches[nr] = target + 1
            continue

        left, right = tree.children(nr)
        count = matches[left] + matches[right]
        leaves[nr] = leaves[left] + leaves[right]
        if count == target:
            # MRCA: the branch above belongs to the enclosing scope
            mrca.append((nr, int(leaves[nr])))
            count = target + 1
        elif 0 < count < target:
            found.append(nr)
        matches[nr] = count
    return found, mrca


def collect_clade_nodes(
    tree: NumberedTree,
    clade: CladeConstraint,
    *,
    require_monophyly: bool = True,
) -> List[int]:
    """Node numbers of the branches owned by ``clade``, in post-order.

    The clade's own MRCA is never included. When the declared taxa do not form
    a clade of ``tree`` the call fails if ``require_monophyly`` is set;
    otherwise a warning is logged and the node set derived from the scan is
    returned as-is.
    """
    members, target = membership_mask(tree, clade)
    found, mrca = _collect(tree, members, target)

    _, descendant_leaves = mrca[0]
    if descendant_leaves != target:
        msg = (
            f"Clade {clade.id} is not monophyletic in the tree: its MRCA has "
            f"{descendant_leaves} descendant taxa but {target} are declared"
        )
        if require_monophyly:
            raise ConfigurationError(msg)
        logger.warning(msg)
    return found


def build_ownership_map(
    tree: NumberedTree,
    clades: Sequence[CladeConstraint],
    *,
    require_monophyly: bool = True,
) -> np.ndarray:
    """Map every node number to the index of the clade owning its branch.

    Nodes outside every clade map to ``NO_CLADE``. Clades are applied largest
    first so that a nested clade overwrites its enclosing clade on the nodes
    they share.
    """
    clade_nodes = [collect_clade_nodes(tree, c, require_monophyly=require_monophyly) for c in clades]

    ownership = np.full(tree.node_count, NO_CLADE, dtype=int)
    done = [False] * len(clades)
    for _ in range(len(clades)):
        best = -1
        best_size = -1
        for j, nodes in enumerate(clade_nodes):
            if not done[j] and len(nodes) > best_size:
                best = j
                best_size = len(nodes)
        for nr in clade_nodes[best]:
            ownership[nr] = best
        done[best] = True
    return ownership


def owner_slot(ownership: np.ndarray, nr: int, n_clades: int) -> int:
    """Index of the clade owning ``nr``, or ``n_clades`` for the background."""
    owner = int(ownership[nr])
    return owner if owner >= 0 else n_clades
