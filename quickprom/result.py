"""Raw query results as returned by the Prometheus HTTP API."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


SCALAR = "scalar"
VECTOR = "vector"
MATRIX = "matrix"
STRING = "string"


class ResultError(Exception):
    """Raised when an API payload cannot be decoded into a result."""


# ── Model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SamplePair:
    timestamp: int  # ms since epoch
    value: float


@dataclass(frozen=True)
class Sample:
    metric: dict[str, str]
    timestamp: int
    value: float


@dataclass(frozen=True)
class Series:
    metric: dict[str, str]
    values: tuple[SamplePair, ...] = ()


@dataclass(frozen=True)
class Scalar:
    timestamp: int
    value: float


@dataclass(frozen=True)
class QueryResult:
    """A result tagged with its type.

    ``value`` is a Scalar, a list of Samples, a list of Series, or the raw
    ``[ts, str]`` pair for string results.
    """

    result_type: str
    value: Any = field(default=None)

    @classmethod
    def from_api(cls, data: dict) -> QueryResult:
        """Decode the ``data`` object of an API response."""
        if not isinstance(data, dict) or "resultType" not in data:
            raise ResultError("response data has no resultType")
        rtype = data["resultType"]
        raw = data.get("result")
        try:
            if rtype == SCALAR:
                return cls(rtype, _decode_scalar(raw))
            if rtype == VECTOR:
                return cls(rtype, [_decode_sample(s) for s in raw or []])
            if rtype == MATRIX:
                return cls(rtype, [_decode_series(s) for s in raw or []])
        except (TypeError, ValueError, KeyError, IndexError) as e:
            raise ResultError(f"malformed {rtype} result: {e}") from e
        return cls(rtype, raw)

    def to_json(self) -> dict:
        """Backend-native encoding, ``resultType`` first."""
        if self.result_type == SCALAR:
            result: Any = None
            if self.value is not None:
                result = _encode_pair(self.value.timestamp, self.value.value)
        elif self.result_type == VECTOR:
            result = [
                {"metric": _sorted_metric(s.metric),
                 "value": _encode_pair(s.timestamp, s.value)}
                for s in self.value
            ]
        elif self.result_type == MATRIX:
            result = [
                {"metric": _sorted_metric(s.metric),
                 "values": [_encode_pair(p.timestamp, p.value) for p in s.values]}
                for s in self.value
            ]
        else:
            result = self.value
        return {"resultType": self.result_type, "result": result}


# ── Decoding ──────────────────────────────────────────────────────────

def parse_timestamp(ts) -> int:
    """API seconds (int, float or numeric string) -> integer milliseconds."""
    return int(round(Decimal(str(ts)) * 1000))


def parse_sample_value(val: str) -> float:
    # float() accepts "NaN", "+Inf" and "-Inf" as sent by the API
    return float(val)


def _decode_scalar(raw) -> Scalar | None:
    if raw is None:
        return None
    ts, val = raw
    return Scalar(parse_timestamp(ts), parse_sample_value(val))


def _decode_sample(raw: dict) -> Sample:
    ts, val = raw["value"]
    return Sample(
        metric=dict(raw.get("metric") or {}),
        timestamp=parse_timestamp(ts),
        value=parse_sample_value(val),
    )


def _decode_series(raw: dict) -> Series:
    return Series(
        metric=dict(raw.get("metric") or {}),
        values=tuple(
            SamplePair(parse_timestamp(ts), parse_sample_value(val))
            for ts, val in raw.get("values") or []
        ),
    )


# ── Encoding ──────────────────────────────────────────────────────────

def format_sample_value(v: float) -> str:
    """Shortest decimal string, never in exponent form."""
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "+Inf" if v > 0 else "-Inf"
    s = format(Decimal(repr(v)), "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def _encode_timestamp(ms: int) -> int | float:
    if ms % 1000 == 0:
        return ms // 1000
    return ms / 1000


def _encode_pair(ms: int, v: float) -> list:
    return [_encode_timestamp(ms), format_sample_value(v)]


def _sorted_metric(metric: dict[str, str]) -> dict[str, str]:
    return {k: metric[k] for k in sorted(metric)}
