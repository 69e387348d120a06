"""JSON formatter — the raw result, structured, to stdout."""
from __future__ import annotations

import json
import sys
from typing import TextIO

from quickprom.result import QueryResult


def render_json(result: QueryResult, stream: TextIO | None = None) -> None:
    """Write ``{"resultType": ..., "result": ...}``; encoding errors propagate."""
    stream = stream or sys.stdout
    json.dump(result.to_json(), stream, indent=2, allow_nan=False)
    stream.write("\n")
