"""Label commonality and value magnitude statistics for a query result."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping

from quickprom.result import Sample, Scalar, Series

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_FRAC_RE = re.compile(r"^\d+\.(\d+)")


def ms_to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def shortest_repr(value: float) -> str:
    """Shortest round-trip digits, in exponent form below 1e-4 and from 1e6 up.

    2500000.0 gives "2.5e+6" and 123.0 gives "123".
    """
    d = Decimal(repr(float(value))).normalize()
    exp = d.adjusted()
    if exp < -4 or exp >= 6:
        return f"{d:e}"
    return f"{d:f}"


@dataclass(frozen=True)
class LabelInfo:
    values: frozenset[str]
    occurrences: int


@dataclass(frozen=True)
class ValueInfo:
    label_info: Mapping[str, LabelInfo] = field(default_factory=dict)
    length: int = 0
    seen_timestamps: tuple[int, ...] = ()
    min_value_exp: int = 0
    max_value_exp: int = 0
    max_value_frac_length: int = 0

    def is_label_common(self, name: str) -> bool:
        if self.length <= 1:
            return False
        info = self.label_info[name]
        return len(info.values) == 1 and info.occurrences == self.length

    def common_labels(self) -> dict[str, str]:
        return {
            name: next(iter(info.values))
            for name, info in self.label_info.items()
            if self.is_label_common(name)
        }

    def varying_labels(self) -> list[str]:
        return sorted(name for name in self.label_info if not self.is_label_common(name))

    def seen_times(self) -> list[datetime]:
        return [ms_to_datetime(ts) for ts in self.seen_timestamps]


# ── Scanning ──────────────────────────────────────────────────────────

class _Scan:
    """Running totals for one pass; frozen into a ValueInfo at the end."""

    def __init__(self):
        self.labels: dict[str, tuple[set[str], int]] = {}
        self.timestamps: set[int] = set()
        self.min_exp: int | None = None
        self.max_exp: int | None = None
        self.frac_length = 0

    def add_metric(self, metric: Mapping[str, str]) -> None:
        for name, value in metric.items():
            if name in self.labels:
                values, count = self.labels[name]
                values.add(value)
                self.labels[name] = (values, count + 1)
            else:
                self.labels[name] = ({value}, 1)

    def add_value(self, value: float) -> None:
        # zero has no exponent, and neither do NaN or +/-Inf
        if value == 0 or not math.isfinite(value):
            return
        value = abs(value)

        exp = math.floor(math.log10(value))
        if self.min_exp is None or exp < self.min_exp:
            self.min_exp = exp
        if self.max_exp is None or exp > self.max_exp:
            self.max_exp = exp

        m = _FRAC_RE.match(shortest_repr(value))
        if m:
            self.frac_length = max(self.frac_length, len(m.group(1)))

    def freeze(self, length: int) -> ValueInfo:
        if self.min_exp is None or self.max_exp is None:
            min_exp = max_exp = 0
        else:
            min_exp, max_exp = self.min_exp, self.max_exp
        return ValueInfo(
            label_info=MappingProxyType({
                name: LabelInfo(frozenset(values), count)
                for name, (values, count) in self.labels.items()
            }),
            length=length,
            seen_timestamps=tuple(sorted(self.timestamps)),
            min_value_exp=min_exp,
            max_value_exp=max_exp,
            max_value_frac_length=self.frac_length,
        )


def analyze(items: Iterable[tuple[Mapping[str, str], Iterable[tuple[int, float]]]]) -> ValueInfo:
    """Fold (label set, points) pairs into a ValueInfo."""
    scan = _Scan()
    length = 0
    for metric, points in items:
        length += 1
        scan.add_metric(metric)
        for ts, value in points:
            scan.timestamps.add(ts)
            scan.add_value(value)
    return scan.freeze(length)


def scalar_info(scalar: Scalar) -> ValueInfo:
    return analyze([({}, [(scalar.timestamp, scalar.value)])])


def instant_vector_info(vector: list[Sample]) -> ValueInfo:
    info = analyze((s.metric, [(s.timestamp, s.value)]) for s in vector)
    if not vector:
        return info
    # the first sample's timestamp stands for the whole vector
    return replace(info, seen_timestamps=(vector[0].timestamp,))


def range_vector_info(matrix: list[Series]) -> ValueInfo:
    return analyze(
        (s.metric, [(p.timestamp, p.value) for p in s.values]) for s in matrix
    )
