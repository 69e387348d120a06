"""Human formatter — Rich terminal output, with a plain tab-separated fallback."""
from __future__ import annotations

import os
import sys
from datetime import datetime, tzinfo
from typing import Callable, Protocol, TextIO

from rich.box import ASCII as ASCII_BOX, HEAVY_HEAD
from rich.console import Console
from rich.measure import Measurement
from rich.table import Table
from rich.text import Text

from quickprom.formatting import (
    TIME_FORMAT_WITH_TZ, DATE_FORMAT,
    FormattedValue, FormattedScalar, FormattedInstantVector, FormattedRangeVector,
    best_time_format, format_time, shared_date_parts,
)

EMPTY_RESULT = "(empty result)"

_UNBOUNDED = 1 << 20


def detect_ascii() -> bool:
    encoding = getattr(sys.stdout, "encoding", "") or ""
    if encoding.lower().replace("-", "") not in ("utf8", "utf16", "utf32"):
        return True
    lang = os.environ.get("LANG", "") + os.environ.get("LC_ALL", "")
    if lang and "utf" not in lang.lower():
        return True
    return False


# ── Table writers ─────────────────────────────────────────────────────

class TableWriter(Protocol):
    def add_row(self, cells: list[str]) -> None: ...

    def render(self) -> None: ...


# (headers, right_aligned flags) -> writer
TableWriterFactory = Callable[[list[str], list[bool]], TableWriter]


class RichTableWriter:
    """Bordered table with bold headers."""

    def __init__(self, console: Console, headers: list[str], right: list[bool],
                 ascii_mode: bool = False):
        self.console = console
        self.table = Table(box=ASCII_BOX if ascii_mode else HEAVY_HEAD,
                           header_style="bold", padding=(0, 1))
        for header, r in zip(headers, right):
            self.table.add_column(Text(header), justify="right" if r else "left",
                                  no_wrap=r)

    def add_row(self, cells: list[str]) -> None:
        self.table.add_row(*(Text(c) for c in cells))

    def render(self) -> None:
        # never squeeze cells to fit the terminal; let wide tables run off the edge
        natural = Measurement.get(self.console, self.console.options.update_width(_UNBOUNDED),
                                  self.table).maximum
        if natural > self.console.width:
            self.table.width = natural
        self.console.print(self.table, crop=False)


class TabTableWriter:
    """Borderless, tab-delimited: a header line, then one line per row."""

    def __init__(self, stream: TextIO, headers: list[str]):
        self.stream = stream
        self.rows = [headers]

    def add_row(self, cells: list[str]) -> None:
        self.rows.append(cells)

    def render(self) -> None:
        for row in self.rows:
            self.stream.write("\t".join(row) + "\n")


# ── Renderer ──────────────────────────────────────────────────────────

class TextRenderer:
    """Writes a formatted result as text.

    ``interactive`` decides between rich output (bold, bordered tables) and
    plain pipeline-friendly text; it defaults to whether ``stream`` is a tty.
    ``tz`` is the display zone, local time when None.
    """

    def __init__(self, stream: TextIO | None = None, interactive: bool | None = None,
                 range_table: bool = False, ascii_mode: bool = False,
                 tz: tzinfo | None = None,
                 table_writer: TableWriterFactory | None = None):
        self.stream = stream or sys.stdout
        if interactive is None:
            interactive = self.stream.isatty()
        self.interactive = interactive
        self.range_table = range_table
        self.ascii_mode = ascii_mode
        self.tz = tz
        self.console = None
        if interactive:
            self.console = Console(file=self.stream, force_terminal=True,
                                   highlight=False, soft_wrap=True)
        self.table_writer = table_writer or self._default_table_writer

    def _default_table_writer(self, headers: list[str], right: list[bool]) -> TableWriter:
        if self.console is not None:
            return RichTableWriter(self.console, headers, right, ascii_mode=self.ascii_mode)
        return TabTableWriter(self.stream, headers)

    # Output primitives

    def _line(self, *parts: str | tuple[str, str]) -> None:
        """Write one line; (text, style) parts are styled when interactive."""
        if self.console is not None:
            self.console.print(Text.assemble(*parts))
        else:
            self.stream.write("".join(p if isinstance(p, str) else p[0] for p in parts) + "\n")

    def _local(self, t: datetime) -> datetime:
        return t.astimezone(self.tz)

    def _labels_line(self, names: list[str], values: list[str]) -> list:
        parts: list = []
        for i, (name, value) in enumerate(zip(names, values)):
            if i:
                parts.append(", ")
            parts.append((f"{name}:", "bold"))
            parts.append(f" {value}")
        return parts

    def _common_labels(self, common: dict[str, str]) -> None:
        if not common:
            return
        names = sorted(common)
        self._line("  ", ("Common labels:", "bold"), " ",
                   *self._labels_line(names, [common[n] for n in names]))

    # Result kinds

    def render(self, f: FormattedValue) -> None:
        if f.empty:
            self._line(EMPTY_RESULT)
            return

        if isinstance(f, FormattedScalar):
            self._render_scalar(f)
        elif isinstance(f, FormattedInstantVector):
            self._render_instant_vector(f)
        elif isinstance(f, FormattedRangeVector):
            if self.range_table:
                self._render_range_table(f)
            else:
                self._render_range_list(f)
        else:
            raise TypeError(f"cannot render {type(f).__name__}")

    def _render_scalar(self, f: FormattedScalar) -> None:
        self._line(("Scalar", "bold"), f" at {format_time(self._local(f.time), TIME_FORMAT_WITH_TZ)}")
        self._line()

        tw = self.table_writer(["value"], [True])
        tw.add_row([f.format_float(f.value)])
        tw.render()

    def _render_instant_vector(self, f: FormattedInstantVector) -> None:
        self._line(("Instant vector", "bold"),
                   f" at {format_time(self._local(f.time), TIME_FORMAT_WITH_TZ)}")
        self._common_labels(f.common_labels)
        self._line()

        headers = list(f.varying_labels) + ["value"]
        tw = self.table_writer(headers, [False] * len(f.varying_labels) + [True])
        for sample in f.samples:
            tw.add_row(list(sample.label_values) + [f.format_float(sample.value)])
        tw.render()

    def _range_header(self, f: FormattedRangeVector) -> str:
        """Print the range header block; returns the per-point time format."""
        times = [self._local(t) for t in f.seen_times]
        parts = shared_date_parts(times)
        time_format = best_time_format(parts)

        self._line(("Range vector", "bold"))
        if parts.date:
            self._line("  ", ("All on date:", "bold"), f" {times[0].strftime(DATE_FORMAT)}")
        elif times:
            self._line("  ", ("From", "bold"), f" {format_time(times[0], TIME_FORMAT_WITH_TZ)} ",
                       ("to", "bold"), f" {format_time(times[-1], TIME_FORMAT_WITH_TZ)}")
        self._common_labels(f.common_labels)
        self._line()
        return time_format

    def _render_range_list(self, f: FormattedRangeVector) -> None:
        time_format = self._range_header(f)

        for series in f.series:
            if f.varying_labels:
                self._line(*self._labels_line(f.varying_labels, list(series.label_values)), ":")
            else:
                self._line("{}:")
            for point in series.values:
                self._line(f"  {format_time(self._local(point.time), time_format)}: "
                           f"{f.format_float(point.value)}")

    def _render_range_table(self, f: FormattedRangeVector) -> None:
        time_format = self._range_header(f)

        headers = list(f.varying_labels) + [
            format_time(self._local(t), time_format) for t in f.seen_times
        ]
        right = [False] * len(f.varying_labels) + [True] * len(f.seen_times)
        tw = self.table_writer(headers, right)
        for series, row in zip(f.series, f.collate_series_values_by_time()):
            tw.add_row(list(series.label_values) + [
                "" if v is None else f.format_float(v) for v in row
            ])
        tw.render()
