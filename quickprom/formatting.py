"""Presentation model for query results, plus the rules for printing it."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from quickprom.result import MATRIX, SCALAR, VECTOR, QueryResult, Sample, Scalar, Series
from quickprom.value_info import (
    ValueInfo, instant_vector_info, ms_to_datetime, range_vector_info, scalar_info,
)

# Magnitudes outside [10^-3, 10^6) switch to scientific notation
SCI_MIN_EXP = -4
SCI_MAX_EXP = 6
MAX_FRAC_DIGITS = 6

# %f is rendered as milliseconds by format_time
TIME_FORMAT_WITH_TZ = "%Y-%m-%d %H:%M:%S.%f %Z"
DATE_FORMAT = "%Y-%m-%d"


class NoRendererError(Exception):
    """The result type has no presentation model."""

    def __init__(self, result_type: str):
        super().__init__(f"no renderer available for result type {result_type!r}")
        self.result_type = result_type


# ── Model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FormattedValue:
    empty: bool = False
    min_value_exp: int = 0
    max_value_exp: int = 0
    max_value_frac_length: int = 0
    common_labels: dict[str, str] = field(default_factory=dict)
    varying_labels: list[str] = field(default_factory=list)

    def best_float_format(self) -> str:
        """Format spec for values: fixed or scientific, fraction capped at 6."""
        prec = min(self.max_value_frac_length, MAX_FRAC_DIGITS)
        if self.min_value_exp <= SCI_MIN_EXP or self.max_value_exp >= SCI_MAX_EXP:
            return f".{prec}e"
        return f".{prec}f"

    def format_float(self, value: float) -> str:
        return format(value, self.best_float_format())


@dataclass(frozen=True)
class FormattedSamplePair:
    time: datetime
    value: float


@dataclass(frozen=True)
class FormattedSample:
    label_values: tuple[str, ...]
    value: float


@dataclass(frozen=True)
class FormattedSeries:
    label_values: tuple[str, ...]
    values: tuple[FormattedSamplePair, ...]


@dataclass(frozen=True)
class FormattedScalar(FormattedValue):
    time: datetime | None = None
    value: float = 0.0


@dataclass(frozen=True)
class FormattedInstantVector(FormattedValue):
    time: datetime | None = None
    samples: tuple[FormattedSample, ...] = ()


@dataclass(frozen=True)
class FormattedRangeVector(FormattedValue):
    min_time: datetime | None = None
    max_time: datetime | None = None
    seen_times: tuple[datetime, ...] = ()
    series: tuple[FormattedSeries, ...] = ()

    def collate_series_values_by_time(self) -> list[list[float | None]]:
        """One row per series, one cell per seen time; None where a series has no point.

        Both the series points and seen_times must be in ascending time order.
        """
        result = []
        for series in self.series:
            row: list[float | None] = []
            pos = 0
            for seen in self.seen_times:
                while pos < len(series.values) and series.values[pos].time < seen:
                    pos += 1
                if pos < len(series.values) and series.values[pos].time == seen:
                    row.append(series.values[pos].value)
                else:
                    row.append(None)
            result.append(row)
        return result


# ── Normalizing ───────────────────────────────────────────────────────

def _value_stats(info: ValueInfo) -> dict:
    return {
        "min_value_exp": info.min_value_exp,
        "max_value_exp": info.max_value_exp,
        "max_value_frac_length": info.max_value_frac_length,
    }


def _label_values(label_names: list[str], metric: dict[str, str]) -> tuple[str, ...]:
    return tuple(metric.get(name, "") for name in label_names)


def format_scalar(s: Scalar | None) -> FormattedScalar:
    if s is None:
        return FormattedScalar(empty=True)
    return FormattedScalar(
        **_value_stats(scalar_info(s)),
        time=ms_to_datetime(s.timestamp),
        value=s.value,
    )


def format_instant_vector(v: list[Sample]) -> FormattedInstantVector:
    if not v:
        return FormattedInstantVector(empty=True)

    info = instant_vector_info(v)
    varying = info.varying_labels()
    return FormattedInstantVector(
        **_value_stats(info),
        common_labels=info.common_labels(),
        varying_labels=varying,
        time=ms_to_datetime(v[0].timestamp),
        samples=tuple(
            FormattedSample(_label_values(varying, s.metric), s.value) for s in v
        ),
    )


def format_range_vector(m: list[Series]) -> FormattedRangeVector:
    if not m:
        return FormattedRangeVector(empty=True)

    info = range_vector_info(m)
    varying = info.varying_labels()
    seen_times = tuple(info.seen_times())
    return FormattedRangeVector(
        **_value_stats(info),
        common_labels=info.common_labels(),
        varying_labels=varying,
        min_time=seen_times[0] if seen_times else None,
        max_time=seen_times[-1] if seen_times else None,
        seen_times=seen_times,
        series=tuple(
            FormattedSeries(
                _label_values(varying, s.metric),
                tuple(FormattedSamplePair(ms_to_datetime(p.timestamp), p.value) for p in s.values),
            )
            for s in m
        ),
    )


def format_value(result: QueryResult) -> FormattedValue:
    """Dispatch on result type; raises NoRendererError for anything else."""
    if result.result_type == SCALAR:
        return format_scalar(result.value)
    if result.result_type == VECTOR:
        return format_instant_vector(result.value)
    if result.result_type == MATRIX:
        return format_range_vector(result.value)
    raise NoRendererError(result.result_type)


# ── Timestamps ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DateParts:
    date: bool = False
    zero_second: bool = False
    zero_millisecond: bool = False


def shared_date_parts(times: list[datetime]) -> DateParts:
    """Which date/time components are redundant across all of ``times``."""
    if len(times) <= 1:
        return DateParts()

    first = times[0].date()
    date = all(t.date() == first for t in times[1:])
    zero_millisecond = all(t.microsecond == 0 for t in times)
    zero_second = zero_millisecond and all(t.second == 0 for t in times)
    return DateParts(date=date, zero_second=zero_second, zero_millisecond=zero_millisecond)


def best_time_format(parts: DateParts) -> str:
    if parts.zero_second:
        fmt = "%H:%M"
    elif parts.zero_millisecond:
        fmt = "%H:%M:%S"
    else:
        fmt = "%H:%M:%S.%f"
    if not parts.date:
        fmt = f"{DATE_FORMAT} {fmt}"
    return fmt


def format_time(t: datetime, fmt: str) -> str:
    """strftime, except %f is three-digit milliseconds."""
    return t.strftime(fmt.replace("%f", f"{t.microsecond // 1000:03d}"))
