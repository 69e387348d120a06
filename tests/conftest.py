"""Shared fixtures for quickprom tests."""
from __future__ import annotations

import io
from datetime import timezone

import pytest

from quickprom.result import Sample, SamplePair, Series


@pytest.fixture
def two_sample_vector():
    """Two samples sharing label a, differing in label b."""
    return [
        Sample(metric={"a": "1", "b": "x"}, timestamp=4, value=123),
        Sample(metric={"a": "1", "b": "y"}, timestamp=4, value=321),
    ]


@pytest.fixture
def disjoint_matrix():
    """Two series sampled at interleaved, non-overlapping timestamps."""
    return [
        Series(
            metric={"job": "node", "instance": "a"},
            values=(SamplePair(1, 11), SamplePair(3, 13)),
        ),
        Series(
            metric={"job": "node", "instance": "b"},
            values=(SamplePair(2, 12), SamplePair(4, 14)),
        ),
    ]


@pytest.fixture
def plain_renderer():
    """Factory: a non-interactive UTC renderer writing to a StringIO."""
    from quickprom.formatters.human import TextRenderer

    def _make(**kwargs):
        stream = io.StringIO()
        kwargs.setdefault("interactive", False)
        kwargs.setdefault("tz", timezone.utc)
        return TextRenderer(stream=stream, **kwargs), stream
    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Drop any QUICKPROM_* variables from the real environment."""
    from quickprom.options import ENV_VARS
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)
