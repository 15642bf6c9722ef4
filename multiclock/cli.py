"""multiclock command-line interface."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .clades import CladeConstraint
from .clock import (
    BranchRateModel,
    MultiRelaxedClockModel,
    MultiRelaxedLogNormalClockModel,
    MultiStrictClockModel,
)
from .distributions import LogNormal
from .exceptions import MultiClockError
from .parameters import IntegerParameter, RealParameter
from .reporting import TraceLogger
from .trees import NumberedTree, read_tree_file


def _parse_assignment(raw: str, flag: str) -> tuple[str, str]:
    name, sep, value = raw.partition("=")
    name = name.strip()
    if not sep or not name or not value.strip():
        raise ValueError(f"{flag} expects NAME=VALUE, got {raw!r}")
    return name, value.strip()


def _parse_clade_arg(raw: str) -> CladeConstraint:
    name, value = _parse_assignment(raw, "--clade")
    taxa = tuple(x.strip() for x in value.split(",") if x.strip())
    return CladeConstraint(id=name, taxa=taxa)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multiclock",
        description="Report per-branch clock rates for a tree with clade-specific clocks.",
    )
    parser.add_argument("input", help="Path to a Newick tree (the first tree in the file is used).")
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Optional output path for the rate table. Defaults to stdout.",
    )
    parser.add_argument(
        "--clade",
        action="append",
        default=[],
        metavar="ID=TAXON,TAXON,...",
        help="Declare a monophyletic clade. Repeat for several clades.",
    )
    parser.add_argument(
        "--model",
        choices=["strict", "relaxed", "lognormal"],
        default="strict",
        help="Clock model: strict per-clade clocks, relaxed per-branch categories, or per-clade log-normal categories.",
    )
    parser.add_argument(
        "--base-rate",
        type=float,
        default=1.0,
        help="Rate of branches outside every clade (strict model).",
    )
    parser.add_argument(
        "--clade-rate",
        action="append",
        default=[],
        metavar="ID=RATE",
        help="Clade clock rate (strict) or mean-rate multiplier (relaxed). Unlisted clades use 1.0.",
    )
    parser.add_argument(
        "--stddev",
        type=float,
        default=0.33,
        help="Log-space standard deviation of the log-normal rate distribution.",
    )
    parser.add_argument(
        "--discrete-rates",
        type=int,
        default=-1,
        help="Number of rate categories for --model relaxed; <= 0 uses one per branch.",
    )
    parser.add_argument(
        "--normalize",
        action="store_true",
        help="Scale relaxed rates so the branch-length-weighted mean rate is 1.",
    )
    parser.add_argument(
        "--trace",
        default=None,
        help="Write the per-clade mean rates as a tab-separated trace (--model relaxed only).",
    )
    return parser


def _build_model(args, tree: NumberedTree, clades: list[CladeConstraint], clade_rates: dict[str, float]) -> BranchRateModel:
    if args.model == "strict":
        return MultiStrictClockModel(
            tree,
            base_rate=RealParameter(args.base_rate, id="baseRate", lower=0.0),
            clock_rates=[RealParameter(clade_rates.get(c.id, 1.0), id=f"clockRate.{c.id}", lower=0.0) for c in clades],
            clades=clades,
        )
    if args.model == "relaxed":
        mean_rate = RealParameter([clade_rates.get(c.id, 1.0) for c in clades] + [1.0], id="meanRate", lower=0.0)
        return MultiRelaxedClockModel(
            tree,
            LogNormal(1.0, args.stddev),
            IntegerParameter(0, id="rateCategories"),
            clades,
            mean_rate=mean_rate,
            normalize=args.normalize,
            n_discrete_rates=args.discrete_rates,
        )
    return MultiRelaxedLogNormalClockModel(
        tree,
        RealParameter(args.stddev, id="stddev", lower=0.0),
        IntegerParameter(0, id="rateCategories"),
        clades,
        normalize=args.normalize,
    )


def format_rate_table(model: BranchRateModel) -> str:
    tree = model.tree
    lines = ["node\tlabel\tclade\trate"]
    for nr in range(tree.node_count):
        owner = model.owner_id(nr)
        if tree.is_root(nr):
            owner = "root"
        lines.append(f"{nr}\t{tree.label(nr)}\t{owner or 'background'}\t{model.rate_for_branch(nr):.10g}")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    if args.stddev <= 0:
        print("error: --stddev must be > 0", file=sys.stderr)
        return 2
    if args.base_rate <= 0:
        print("error: --base-rate must be > 0", file=sys.stderr)
        return 2
    try:
        clades = [_parse_clade_arg(raw) for raw in args.clade]
        clade_rates = {}
        for raw in args.clade_rate:
            name, value = _parse_assignment(raw, "--clade-rate")
            clade_rates[name] = float(value)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    unknown = sorted(set(clade_rates) - {c.id for c in clades})
    if unknown:
        print(f"error: --clade-rate for undeclared clade(s): {', '.join(unknown)}", file=sys.stderr)
        return 2
    for name, rate in clade_rates.items():
        if not rate > 0:
            print(f"error: --clade-rate for {name} must be > 0", file=sys.stderr)
            return 2
    if args.trace and args.model != "relaxed":
        print("error: --trace requires --model relaxed", file=sys.stderr)
        return 2

    try:
        trees = read_tree_file(args.input)
    except Exception as exc:  # pragma: no cover - error path
        print(f"error: failed reading input tree: {exc}", file=sys.stderr)
        return 1
    if not trees:
        print("error: no tree loaded from input file", file=sys.stderr)
        return 1

    try:
        tree = NumberedTree(trees[0])
        model = _build_model(args, tree, clades, clade_rates)
        table = format_rate_table(model)
    except MultiClockError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.trace:
        try:
            with open(args.trace, "w", encoding="utf-8") as handle:
                trace = TraceLogger(handle, [model])
                trace.init()
                trace.log(0)
                trace.close()
        except Exception as exc:  # pragma: no cover - error path
            print(f"error: failed writing trace: {exc}", file=sys.stderr)
            return 1

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as handle:
                handle.write(table + "\n")
        except Exception as exc:  # pragma: no cover - error path
            print(f"error: failed writing output: {exc}", file=sys.stderr)
            return 1
    else:
        print(table)
    return 0
