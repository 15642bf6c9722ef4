"""Tree I/O and stable integer node numbering for rooted binary trees."""

from __future__ import annotations

import io
from typing import Iterator, List

from Bio import Phylo
from Bio.Phylo.BaseTree import Clade, Tree

from .exceptions import ConfigurationError

Taxon = str

_INTERNAL_ORDERS = ("postorder", "preorder")


def read_tree(newick: str) -> Tree:
    """Parse a single Newick string."""
    return Phylo.read(io.StringIO(newick.strip()), "newick")


def read_tree_file(path: str) -> List[Tree]:
    """Read Newick trees from a file (one per line)."""
    trees: List[Tree] = []
    with open(path, "r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            trees.append(read_tree(line))
    return trees


def _postorder(root: Clade) -> Iterator[Clade]:
    stack: list[tuple[Clade, bool]] = [(root, False)]
    while stack:
        clade, expanded = stack.pop()
        if expanded or not clade.clades:
            yield clade
            continue
        stack.append((clade, True))
        for child in reversed(clade.clades):
            stack.append((child, False))


def _preorder(root: Clade) -> Iterator[Clade]:
    stack = [root]
    while stack:
        clade = stack.pop()
        yield clade
        stack.extend(reversed(clade.clades))


class NumberedTree:
    """A rooted, strictly bifurcating tree with integer node numbers.

    Leaves are numbered ``0..n-1`` from left to right, so a leaf number is also
    the index of its taxon in :attr:`taxa_names`. Internal nodes take
    ``n..2n-2`` in post-order (root last) or pre-order (root first), chosen by
    ``internal_order``.

    Branch lengths are read from the wrapped clades on every call, so edits
    made by whoever owns the tree are picked up. The topology is assumed to
    stay fixed.
    """

    def __init__(self, tree: Tree, internal_order: str = "postorder"):
        if internal_order not in _INTERNAL_ORDERS:
            raise ValueError(f"internal_order must be one of {_INTERNAL_ORDERS}")
        self.tree = tree
        self.internal_order = internal_order

        leaves: List[Clade] = []
        for clade in _postorder(tree.root):
            if clade.clades:
                if len(clade.clades) != 2:
                    raise ConfigurationError(
                        f"Tree must be rooted and bifurcating; found a node with {len(clade.clades)} children"
                    )
            else:
                leaves.append(clade)
        if len(leaves) < 2:
            raise ConfigurationError("Tree must have at least two leaves")

        walk = _postorder if internal_order == "postorder" else _preorder
        internals = [clade for clade in walk(tree.root) if clade.clades]

        self._nodes: List[Clade] = leaves + internals
        self._numbers: dict[int, int] = {id(clade): nr for nr, clade in enumerate(self._nodes)}
        self._parents: List[int] = [-1] * len(self._nodes)
        for nr, clade in enumerate(self._nodes):
            for child in clade.clades:
                self._parents[self._numbers[id(child)]] = nr

        names: List[Taxon] = []
        seen: set[Taxon] = set()
        for leaf in leaves:
            name = "" if leaf.name is None else str(leaf.name)
            if not name:
                raise ConfigurationError("Every leaf must carry a taxon name")
            if name in seen:
                raise ConfigurationError(f"Taxon {name} appears more than once in the tree")
            seen.add(name)
            names.append(name)
        self.taxa_names: List[Taxon] = names

    @classmethod
    def from_newick(cls, newick: str, internal_order: str = "postorder") -> "NumberedTree":
        return cls(read_tree(newick), internal_order=internal_order)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def leaf_count(self) -> int:
        return len(self.taxa_names)

    @property
    def root_nr(self) -> int:
        return self._numbers[id(self.tree.root)]

    def node(self, nr: int) -> Clade:
        return self._nodes[nr]

    def nr(self, clade: Clade) -> int:
        try:
            return self._numbers[id(clade)]
        except KeyError:
            raise ValueError("Clade does not belong to this tree") from None

    def is_leaf(self, nr: int) -> bool:
        return nr < self.leaf_count

    def is_root(self, nr: int) -> bool:
        return self._parents[nr] < 0

    def parent(self, nr: int) -> int | None:
        parent = self._parents[nr]
        return None if parent < 0 else parent

    def children(self, nr: int) -> tuple[int, ...]:
        return tuple(self._numbers[id(child)] for child in self._nodes[nr].clades)

    def label(self, nr: int) -> str:
        name = self._nodes[nr].name
        return "" if name is None else str(name)

    def branch_length(self, nr: int) -> float:
        if self.is_root(nr):
            return 0.0
        length = self._nodes[nr].branch_length
        return 0.0 if length is None else float(length)

    def postorder(self) -> List[int]:
        return [self._numbers[id(clade)] for clade in _postorder(self.tree.root)]

    def non_root_nodes(self) -> List[int]:
        return [nr for nr in range(self.node_count) if not self.is_root(nr)]
