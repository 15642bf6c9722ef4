"""Tests for the clade membership scan and the ownership map."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from multiclock.clades import (
    NO_CLADE,
    CladeConstraint,
    build_ownership_map,
    collect_clade_nodes,
    membership_mask,
    owner_slot,
)
from multiclock.exceptions import ConfigurationError
from multiclock.trees import NumberedTree

# leaves A..G = 0..6; AB=7, ABC=8, ABCD=9, EF=10, EFG=11, root=12
T8 = "((((A:1,B:1):1,C:2):1,D:3):1,((E:1,F:1):1,G:2):2);"


def _tree(newick: str = T8, **kwargs) -> NumberedTree:
    return NumberedTree.from_newick(newick, **kwargs)


def test_two_taxon_clade_owns_only_its_leaves():
    tree = _tree("((A:1,B:1):1,(C:1,D:1):1);")
    ab = CladeConstraint("ab", ("A", "B"))
    assert collect_clade_nodes(tree, ab) == [0, 1]

    ownership = build_ownership_map(tree, [ab])
    assert ownership.tolist() == [0, 0, NO_CLADE, NO_CLADE, NO_CLADE, NO_CLADE, NO_CLADE]


def test_scan_collects_interior_and_skips_mrca():
    tree = _tree()
    outer = CladeConstraint("outer", ("A", "B", "C", "D"))
    assert collect_clade_nodes(tree, outer) == [0, 1, 7, 2, 8, 3]
    assert 9 not in collect_clade_nodes(tree, outer)


def test_scan_ignores_non_members_outside_the_clade():
    tree = _tree()
    abc = CladeConstraint("abc", ("C", "A", "B"))
    nodes = collect_clade_nodes(tree, abc)
    assert sorted(nodes) == [0, 1, 2, 7]
    # the small (E,F) subtree is not part of the clade
    assert 10 not in nodes


def test_nested_clade_wins_on_shared_nodes():
    tree = _tree()
    outer = CladeConstraint("outer", ("A", "B", "C", "D"))
    inner = CladeConstraint("inner", ("A", "B"))
    ownership = build_ownership_map(tree, [outer, inner])
    assert ownership[0] == 1 and ownership[1] == 1
    # branch above the inner MRCA stays with the enclosing clade
    assert ownership[7] == 0
    assert ownership[2] == 0 and ownership[8] == 0 and ownership[3] == 0
    # branch above the outer MRCA belongs to the background
    assert ownership[9] == NO_CLADE
    for nr in (4, 5, 6, 10, 11, 12):
        assert ownership[nr] == NO_CLADE


def test_nesting_does_not_depend_on_declaration_order():
    tree = _tree()
    outer = CladeConstraint("outer", ("A", "B", "C", "D"))
    inner = CladeConstraint("inner", ("A", "B"))
    forward = build_ownership_map(tree, [outer, inner])
    backward = build_ownership_map(tree, [inner, outer])
    swap = np.array([1, 0, NO_CLADE])
    assert np.array_equal(swap[forward], backward)


def test_disjoint_clades_share_nothing():
    tree = _tree()
    left = CladeConstraint("left", ("A", "B", "C"))
    right = CladeConstraint("right", ("E", "F", "G"))
    ownership = build_ownership_map(tree, [left, right])
    assert sorted(np.flatnonzero(ownership == 0).tolist()) == [0, 1, 2, 7]
    assert sorted(np.flatnonzero(ownership == 1).tolist()) == [4, 5, 6, 10]


def test_all_taxa_clade_covers_every_non_root_node():
    tree = _tree()
    everything = CladeConstraint("all")
    nodes = collect_clade_nodes(tree, everything)
    assert sorted(nodes) == [nr for nr in range(13) if nr != tree.root_nr]


def test_single_taxon_clade_owns_its_leaf():
    tree = _tree()
    assert collect_clade_nodes(tree, CladeConstraint("g", ("G",))) == [6]


def _caterpillar(n: int) -> str:
    newick = "T0:1"
    for i in range(1, n):
        newick = f"({newick},T{i}:1):1"
    return newick + ";"


def test_scan_handles_deep_caterpillar_trees():
    tree = _tree(_caterpillar(1500))
    assert tree.node_count == 2999
    assert collect_clade_nodes(tree, CladeConstraint("c", ("T0", "T1"))) == [0, 1]

    first_ten = CladeConstraint("ten", tuple(f"T{i}" for i in range(10)))
    nodes = collect_clade_nodes(tree, first_ten)
    assert len(nodes) == 18
    assert sorted(nodes)[:10] == list(range(10))

    ownership = build_ownership_map(tree, [first_ten, CladeConstraint("c", ("T0", "T1"))])
    assert ownership[0] == 1 and ownership[5] == 0
    assert ownership[1499] == NO_CLADE


def test_ownership_with_preorder_numbering():
    tree = _tree(internal_order="preorder")
    inner = CladeConstraint("inner", ("A", "B"))
    outer = CladeConstraint("outer", ("A", "B", "C", "D"))
    ownership = build_ownership_map(tree, [inner, outer])
    # AB=10, ABC=9, ABCD=8 under pre-order numbering
    assert ownership[0] == 0 and ownership[1] == 0
    assert ownership[10] == 1 and ownership[9] == 1
    assert ownership[8] == NO_CLADE
    assert ownership[tree.root_nr] == NO_CLADE


def test_owner_slot_maps_background_past_the_clades():
    ownership = np.array([1, NO_CLADE, 0])
    assert [owner_slot(ownership, nr, 2) for nr in range(3)] == [1, 2, 0]


def test_membership_mask():
    tree = _tree()
    mask, target = membership_mask(tree, CladeConstraint("x", ("G", "A")))
    assert target == 2
    assert mask.tolist() == [True, False, False, False, False, False, True]


def test_unknown_taxon_is_fatal():
    tree = _tree()
    with pytest.raises(ConfigurationError, match="Cannot find taxon Z of clade bad"):
        collect_clade_nodes(tree, CladeConstraint("bad", ("A", "Z")))


def test_duplicate_taxon_is_fatal():
    tree = _tree()
    with pytest.raises(ConfigurationError, match="Taxon A is defined multiple times in clade dup"):
        build_ownership_map(tree, [CladeConstraint("dup", ("A", "B", "A"))])


def test_empty_clade_is_fatal():
    with pytest.raises(ConfigurationError):
        membership_mask(_tree(), CladeConstraint("empty", ()))


def test_non_monophyletic_taxa_rejected_when_required():
    tree = _tree()
    with pytest.raises(ConfigurationError, match="not monophyletic"):
        collect_clade_nodes(tree, CladeConstraint("ae", ("A", "E")))


def test_non_monophyletic_taxa_tolerated_with_warning(caplog):
    tree = _tree()
    with caplog.at_level(logging.WARNING, logger="multiclock"):
        nodes = collect_clade_nodes(tree, CladeConstraint("ae", ("A", "E")), require_monophyly=False)
    assert "not monophyletic" in caplog.text
    # every node carrying one of the two taxa, up to the shared ancestor
    assert sorted(nodes) == [0, 4, 7, 8, 9, 10, 11]
