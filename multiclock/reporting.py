"""Tab-separated trace output for loggable models."""

from __future__ import annotations

import io
from typing import Callable, List, Protocol, Sequence, TextIO


class Loggable(Protocol):
    def init(self, out: TextIO) -> None: ...

    def log(self, sample: int, out: TextIO) -> None: ...

    def close(self, out: TextIO) -> None: ...


def _columns(write: Callable[[TextIO], None]) -> str:
    """Capture one loggable's columns, without a trailing separator."""
    buf = io.StringIO()
    write(buf)
    text = buf.getvalue()
    return text[:-1] if text.endswith("\t") else text


class TraceLogger:
    """Write one header line, then one line per logged sample.

    Each loggable writes its own columns; the logger adds the sample column,
    the separators between loggables and the line breaks. Loggables may end
    their output with a tab or not, so header and data lines always have the
    same number of fields.
    """

    def __init__(self, out: TextIO, loggables: Sequence[Loggable], every: int = 1):
        if every < 1:
            raise ValueError("every must be >= 1")
        self.out = out
        self.loggables = list(loggables)
        self.every = every

    def _write_line(self, first: str, fields: List[str]) -> None:
        self.out.write("\t".join([first] + fields) + "\n")

    def init(self) -> None:
        self._write_line("Sample", [_columns(item.init) for item in self.loggables])

    def log(self, sample: int) -> None:
        if sample % self.every:
            return
        self._write_line(
            str(sample),
            [_columns(lambda buf, item=item: item.log(sample, buf)) for item in self.loggables],
        )

    def close(self) -> None:
        for item in self.loggables:
            item.close(self.out)
        self.out.flush()
