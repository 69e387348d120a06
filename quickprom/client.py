"""HTTP client for the Prometheus query API."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from quickprom.result import QueryResult, ResultError

log = logging.getLogger(__name__)


class QueryError(Exception):
    """The query could not be run, or the server rejected it."""

    def __init__(self, message: str, error_type: str = ""):
        super().__init__(f"{error_type}: {message}" if error_type else message)
        self.error_type = error_type


def _unix(t: datetime) -> float:
    return t.timestamp()


class PrometheusClient:
    """Synchronous client for /api/v1/query and /api/v1/query_range.

    Example:
        with PrometheusClient("http://localhost:9090") as client:
            result = client.query("up", datetime.now().astimezone())
    """

    def __init__(self, target: str, timeout: timedelta = timedelta(seconds=5),
                 verify: bool = True, auth: httpx.Auth | None = None,
                 transport: httpx.BaseTransport | None = None) -> None:
        self.base_url = target.rstrip("/")
        self._client = httpx.Client(
            timeout=timeout.total_seconds(),
            verify=verify,
            auth=auth,
            transport=transport,
        )

    def query(self, query: str, time: datetime) -> QueryResult:
        """Evaluate an instant query at ``time``."""
        return self._get("/api/v1/query", {"query": query, "time": _unix(time)})

    def query_range(self, query: str, start: datetime, end: datetime,
                    step: timedelta) -> QueryResult:
        """Evaluate a range query over [start, end] every ``step``."""
        return self._get("/api/v1/query_range", {
            "query": query,
            "start": _unix(start),
            "end": _unix(end),
            "step": step.total_seconds(),
        })

    def _get(self, path: str, params: dict[str, Any]) -> QueryResult:
        url = f"{self.base_url}{path}"
        log.debug("GET %s %s", url, params)
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise QueryError(str(e) or type(e).__name__) from e
        log.debug("%s %s", response.status_code, response.reason_phrase)

        try:
            body = response.json()
        except ValueError:
            response_error = f"{response.status_code} {response.reason_phrase}"
            raise QueryError(f"server returned non-JSON response ({response_error})") from None

        if not isinstance(body, dict):
            raise QueryError("server returned unexpected response")
        if body.get("status") != "success":
            raise QueryError(body.get("error") or f"status {response.status_code}",
                             body.get("errorType", ""))
        for warning in body.get("warnings") or []:
            log.warning("server warning: %s", warning)

        try:
            return QueryResult.from_api(body.get("data"))
        except ResultError as e:
            raise QueryError(str(e)) from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PrometheusClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
