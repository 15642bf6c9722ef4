"""Tests for trace output."""

from __future__ import annotations

import io

import pytest

from multiclock.clades import CladeConstraint
from multiclock.clock import MultiRelaxedClockModel
from multiclock.distributions import LogNormal
from multiclock.parameters import IntegerParameter, RealParameter
from multiclock.reporting import TraceLogger
from multiclock.trees import NumberedTree

T8 = "((((A:1,B:1):1,C:2):1,D:3):1,((E:1,F:1):1,G:2):2);"


def _model(mean_rate=None) -> MultiRelaxedClockModel:
    return MultiRelaxedClockModel(
        NumberedTree.from_newick(T8),
        LogNormal(1.0, 0.5),
        IntegerParameter(0),
        [CladeConstraint("calib.prior", ("A", "B", "C", "D")), CladeConstraint("inner", ("A", "B"))],
        mean_rate=mean_rate,
    )


class _Counter:
    def __init__(self):
        self.closed = False

    def init(self, out):
        out.write("count")

    def log(self, sample, out):
        out.write(str(sample * 10))

    def close(self, out):
        self.closed = True


def test_header_strips_prior_suffix():
    out = io.StringIO()
    _model().init(out)
    assert out.getvalue() == "meanRate.calib\tmeanRate.inner\tmeanRate.root"


def test_log_writes_every_mean_rate():
    out = io.StringIO()
    model = _model(RealParameter([2.0, 3.0, 0.5], id="meanRate"))
    model.log(0, out)
    assert out.getvalue() == "2.0\t3.0\t0.5\t"


def test_header_uses_parameter_id():
    model = _model(RealParameter(1.0, id="cladeRate"))
    assert model.column_names() == ["cladeRate.calib", "cladeRate.inner", "cladeRate.root"]


def test_trace_logger_lines():
    out = io.StringIO()
    counter = _Counter()
    trace = TraceLogger(out, [_model(), counter], every=2)
    trace.init()
    for sample in range(4):
        trace.log(sample)
    trace.close()

    lines = out.getvalue().splitlines()
    assert lines[0] == "Sample\tmeanRate.calib\tmeanRate.inner\tmeanRate.root\tcount"
    assert lines[1] == "0\t1.0\t1.0\t1.0\t0"
    assert lines[2] == "2\t1.0\t1.0\t1.0\t20"
    assert len(lines) == 3
    assert counter.closed


def test_trace_logger_header_and_rows_have_same_width():
    out = io.StringIO()
    trace = TraceLogger(out, [_Counter(), _model(RealParameter([2.0, 3.0, 0.5], id="meanRate"))])
    trace.init()
    trace.log(0)
    trace.log(1)

    header, *rows = out.getvalue().splitlines()
    assert header == "Sample\tcount\tmeanRate.calib\tmeanRate.inner\tmeanRate.root"
    assert rows == ["0\t0\t2.0\t3.0\t0.5", "1\t10\t2.0\t3.0\t0.5"]
    for row in rows:
        assert len(row.split("\t")) == len(header.split("\t"))


def test_trace_logger_rejects_bad_interval():
    with pytest.raises(ValueError):
        TraceLogger(io.StringIO(), [], every=0)
