"""Tests for quickprom.formatters.human."""
from __future__ import annotations

import io
from datetime import timezone

import pytest

from quickprom.formatters.human import TextRenderer, EMPTY_RESULT
from quickprom.formatting import (
    format_instant_vector, format_range_vector, format_scalar,
)
from quickprom.result import Scalar, SamplePair, Series


class RecordingTableWriter:
    """Table writer that keeps what it was given."""

    instances: list["RecordingTableWriter"] = []

    def __init__(self, headers, right):
        self.headers = headers
        self.right = right
        self.rows = []
        self.rendered = False
        RecordingTableWriter.instances.append(self)

    def add_row(self, cells):
        self.rows.append(cells)

    def render(self):
        self.rendered = True


@pytest.fixture
def recording_writer():
    RecordingTableWriter.instances = []
    return RecordingTableWriter


class TestEmpty:
    @pytest.mark.parametrize("formatted", [
        format_instant_vector([]),
        format_range_vector([]),
        format_scalar(None),
    ])
    def test_plain(self, plain_renderer, formatted):
        renderer, out = plain_renderer()
        renderer.render(formatted)
        assert out.getvalue() == "(empty result)\n"

    def test_range_table_mode(self, plain_renderer):
        renderer, out = plain_renderer(range_table=True)
        renderer.render(format_range_vector([]))
        assert out.getvalue() == EMPTY_RESULT + "\n"


class TestInstantVector:
    def test_plain(self, plain_renderer, two_sample_vector):
        renderer, out = plain_renderer()
        renderer.render(format_instant_vector(two_sample_vector))
        assert out.getvalue() == (
            "Instant vector at 1970-01-01 00:00:00.004 UTC\n"
            "  Common labels: a: 1\n"
            "\n"
            "b\tvalue\n"
            "x\t123\n"
            "y\t321\n"
        )

    def test_table_writer_injection(self, plain_renderer, two_sample_vector, recording_writer):
        renderer, out = plain_renderer(table_writer=recording_writer)
        renderer.render(format_instant_vector(two_sample_vector))
        (tw,) = recording_writer.instances
        assert tw.headers == ["b", "value"]
        assert tw.right == [False, True]
        assert tw.rows == [["x", "123"], ["y", "321"]]
        assert tw.rendered

    def test_no_common_labels_line_for_single_sample(self, plain_renderer, two_sample_vector):
        renderer, out = plain_renderer()
        renderer.render(format_instant_vector(two_sample_vector[:1]))
        assert "Common labels" not in out.getvalue()
        assert "a\tb\tvalue\n1\tx\t123\n" in out.getvalue()

    def test_interactive_uses_bold_and_borders(self, monkeypatch, two_sample_vector):
        monkeypatch.setenv("TERM", "xterm-256color")
        monkeypatch.delenv("NO_COLOR", raising=False)
        out = io.StringIO()
        renderer = TextRenderer(stream=out, interactive=True, ascii_mode=True, tz=timezone.utc)
        renderer.render(format_instant_vector(two_sample_vector))
        text = out.getvalue()
        assert "\x1b[1m" in text
        assert "Instant vector" in text
        assert "123" in text and "321" in text
        assert "|" in text
        assert "\t" not in text

    def test_plain_has_no_escapes(self, plain_renderer, two_sample_vector):
        renderer, out = plain_renderer()
        renderer.render(format_instant_vector(two_sample_vector))
        assert "\x1b" not in out.getvalue()


class TestScalar:
    def test_plain(self, plain_renderer):
        renderer, out = plain_renderer()
        renderer.render(format_scalar(Scalar(timestamp=1500, value=2.5)))
        assert out.getvalue() == (
            "Scalar at 1970-01-01 00:00:01.500 UTC\n"
            "\n"
            "value\n"
            "2.5\n"
        )


class TestRangeVectorList:
    def test_plain(self, plain_renderer, disjoint_matrix):
        renderer, out = plain_renderer()
        renderer.render(format_range_vector(disjoint_matrix))
        assert out.getvalue() == (
            "Range vector\n"
            "  All on date: 1970-01-01\n"
            "  Common labels: job: node\n"
            "\n"
            "instance: a:\n"
            "  00:00:00.001: 11\n"
            "  00:00:00.003: 13\n"
            "instance: b:\n"
            "  00:00:00.002: 12\n"
            "  00:00:00.004: 14\n"
        )

    def test_spanning_dates(self, plain_renderer):
        renderer, out = plain_renderer()
        renderer.render(format_range_vector([
            Series(metric={"job": "x"},
                   values=(SamplePair(0, 1), SamplePair(86_400_000, 2))),
        ]))
        assert out.getvalue() == (
            "Range vector\n"
            "  From 1970-01-01 00:00:00.000 UTC to 1970-01-02 00:00:00.000 UTC\n"
            "\n"
            "job: x:\n"
            "  1970-01-01 00:00: 1\n"
            "  1970-01-02 00:00: 2\n"
        )

    def test_series_without_labels(self, plain_renderer):
        renderer, out = plain_renderer()
        renderer.render(format_range_vector([
            Series(metric={}, values=(SamplePair(1000, 0.25), SamplePair(2000, 0.5))),
        ]))
        assert "{}:\n  00:00:01: 0.25\n  00:00:02: 0.50\n" in out.getvalue()


class TestRangeVectorTable:
    def test_plain(self, plain_renderer, disjoint_matrix):
        renderer, out = plain_renderer(range_table=True)
        renderer.render(format_range_vector(disjoint_matrix))
        assert out.getvalue() == (
            "Range vector\n"
            "  All on date: 1970-01-01\n"
            "  Common labels: job: node\n"
            "\n"
            "instance\t00:00:00.001\t00:00:00.002\t00:00:00.003\t00:00:00.004\n"
            "a\t11\t\t13\t\n"
            "b\t\t12\t\t14\n"
        )

    def test_gap_cells_are_empty_not_zero(self, plain_renderer, recording_writer):
        renderer, _ = plain_renderer(range_table=True, table_writer=recording_writer)
        renderer.render(format_range_vector([
            Series(metric={"s": "1"}, values=(SamplePair(1000, 0.0),)),
            Series(metric={"s": "2"}, values=(SamplePair(2000, 5.0),)),
        ]))
        (tw,) = recording_writer.instances
        assert tw.headers == ["s", "00:00:01", "00:00:02"]
        assert tw.right == [False, True, True]
        assert tw.rows == [["1", "0", ""], ["2", "", "5"]]

    def test_interactive(self, monkeypatch, disjoint_matrix):
        monkeypatch.setenv("TERM", "xterm-256color")
        out = io.StringIO()
        renderer = TextRenderer(stream=out, interactive=True, range_table=True,
                                tz=timezone.utc)
        renderer.render(format_range_vector(disjoint_matrix))
        text = out.getvalue()
        assert "00:00:00.004" in text
        assert "All on date:" in text
        assert "\x1b[1m" in text

    def test_interactive_wide_table_is_not_truncated(self, monkeypatch):
        monkeypatch.setenv("TERM", "xterm-256color")
        monkeypatch.setenv("COLUMNS", "80")
        out = io.StringIO()
        renderer = TextRenderer(stream=out, interactive=True, range_table=True,
                                ascii_mode=True, tz=timezone.utc)
        renderer.render(format_range_vector([
            Series(metric={"s": str(s)},
                   values=tuple(SamplePair(1000 * i, 123456.25 + i) for i in range(20)))
            for s in (1, 2)
        ]))
        text = out.getvalue()
        assert "…" not in text
        for i in range(20):
            assert f"{123456.25 + i:.2f}" in text
        assert "00:00:19" in text
        assert max(len(line) for line in text.splitlines()) > 80
