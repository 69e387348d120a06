"""Authorization for requests to the target."""
from __future__ import annotations

import logging
import shutil
import subprocess

import httpx

log = logging.getLogger(__name__)

CF_TOKEN_COMMAND = ["cf", "oauth-token"]


class AuthError(Exception):
    pass


class HeaderAuth(httpx.Auth):
    """Sends a fixed Authorization header on every request."""

    def __init__(self, authorization: str):
        self.authorization = authorization

    def auth_flow(self, request: httpx.Request):
        request.headers["Authorization"] = self.authorization
        yield request


def basic_auth(user_pass: str) -> httpx.BasicAuth:
    user, password = user_pass.split(":", 1)
    return httpx.BasicAuth(user, password)


def cf_auth() -> HeaderAuth:
    """Authorize with the token printed by `cf oauth-token` ("bearer ...")."""
    if shutil.which(CF_TOKEN_COMMAND[0]) is None:
        raise AuthError("failed to launch `cf oauth-token`: cf not found on PATH")

    log.debug("running %s", " ".join(CF_TOKEN_COMMAND))
    try:
        proc = subprocess.run(CF_TOKEN_COMMAND, capture_output=True, text=True)
    except OSError as e:
        raise AuthError(f"failed to launch `cf oauth-token`: {e}") from e
    if proc.returncode != 0:
        detail = proc.stderr.strip() or proc.stdout.strip() or f"exit status {proc.returncode}"
        raise AuthError(f"failed to run `cf oauth-token`: {detail}")

    return HeaderAuth(proc.stdout.rstrip("\r\n"))
