"""Command line and environment options."""
from __future__ import annotations

import argparse
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping

DEFAULT_TIMEOUT = timedelta(seconds=5)

TIME_HELP = """\
Times may be "now", relative to now (1h, 30m, 2d ago), an ISO date or
datetime (2019-01-01, 2019-01-01T00:12:34Z), or a bare time (14:21,
14:21:01) meaning today. Times without a zone are local.
"""


class OptionsError(Exception):
    pass


@dataclass
class QuickPromOptions:
    target: str = ""
    skip_tls_verify: bool = False
    basic_auth: str = ""
    cf_auth: bool = False
    json: bool = False
    range_table: bool = False
    ascii: bool = False
    verbose: bool = False
    timeout: timedelta = DEFAULT_TIMEOUT

    query: str = ""
    time: datetime | None = None

    range_enabled: bool = False
    range_start: datetime | None = None
    range_end: datetime | None = None
    range_step: timedelta = field(default_factory=timedelta)


# option dest -> environment variable
ENV_VARS = {
    "target": "QUICKPROM_TARGET",
    "skip_tls_verify": "QUICKPROM_SKIP_TLS_VERIFY",
    "basic_auth": "QUICKPROM_BASIC_AUTH",
    "cf_auth": "QUICKPROM_CF_AUTH",
    "json": "QUICKPROM_JSON",
    "range_table": "QUICKPROM_RANGE_TABLE",
    "timeout": "QUICKPROM_TIMEOUT",
}

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


# ── Parsing helpers ───────────────────────────────────────────────────

def parse_bool(val: str) -> bool:
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise ValueError(f"invalid boolean {val!r}")


_DURATION_UNITS = {
    "ms": 0.001, "s": 1, "m": 60, "h": 3600,
    "d": 86400, "w": 604800, "y": 365 * 86400,
}
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d|w|y)")


def parse_duration(val: str) -> timedelta:
    """Parse 30s, 5m, 1h30m, 500ms, 2d, or a plain number of seconds."""
    val = val.strip()
    try:
        return timedelta(seconds=float(val))
    except (ValueError, OverflowError):
        pass
    pos = 0
    seconds = 0.0
    for m in _DURATION_RE.finditer(val):
        if m.start() != pos:
            break
        seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if not val or pos != len(val):
        raise ValueError(f"Cannot parse duration: {val!r} (use e.g. 30s, 5m, 1h30m)")
    return timedelta(seconds=seconds)


_RELATIVE_RE = re.compile(r"^(\d+)([smhdw])$")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_time_arg(val: str, now: datetime | None = None) -> datetime:
    """Parse a time argument: now, relative (1h, 30m, 2d), ISO datetime or date, or HH:MM[:SS]."""
    now = now or datetime.now().astimezone()
    val = val.strip()
    if val == "now":
        return now
    m = _RELATIVE_RE.match(val)
    if m:
        n, unit = int(m.group(1)), m.group(2)
        return now - timedelta(seconds=n * _DURATION_UNITS[unit])
    m = _CLOCK_RE.match(val)
    if m:
        hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
        try:
            return now.replace(hour=hour, minute=minute, second=second, microsecond=0)
        except ValueError as e:
            raise ValueError(f"Cannot parse time: {val!r} ({e})") from e
    try:
        # fromisoformat only takes a trailing Z from 3.11 on
        dt = datetime.fromisoformat(val.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(
            f"Cannot parse time: {val!r} (use ISO format, date, HH:MM, or relative like 1h/30m/2d)"
        ) from None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


# ── Command line ──────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    global_opts = argparse.ArgumentParser(add_help=False)
    global_opts.add_argument("--target", "-t", metavar="TARGET", default=argparse.SUPPRESS,
                             help="URL of Prometheus-compatible target (QUICKPROM_TARGET)")
    global_opts.add_argument("--skip-tls-verify", "-k", action="store_true", default=argparse.SUPPRESS,
                             help="Don't verify remote certificate (QUICKPROM_SKIP_TLS_VERIFY)")
    global_opts.add_argument("--basic-auth", metavar="USER:PASS", default=argparse.SUPPRESS,
                             help="Use basic authentication (QUICKPROM_BASIC_AUTH)")
    global_opts.add_argument("--cf-auth", action="store_true", default=argparse.SUPPRESS,
                             help="Use the current oAuth token from `cf` (QUICKPROM_CF_AUTH)")
    global_opts.add_argument("--json", action="store_true", default=argparse.SUPPRESS,
                             help="Output JSON result (QUICKPROM_JSON)")
    global_opts.add_argument("--range-table", "-b", action="store_true", default=argparse.SUPPRESS,
                             help="Output range vectors as tables (QUICKPROM_RANGE_TABLE)")
    global_opts.add_argument("--timeout", metavar="DURATION", default=argparse.SUPPRESS,
                             help="Maximum time to wait for the server (QUICKPROM_TIMEOUT, default 5s)")
    global_opts.add_argument("--ascii", action="store_true", default=argparse.SUPPRESS,
                             help="Force ASCII table borders")
    global_opts.add_argument("--verbose", "-v", action="store_true", default=argparse.SUPPRESS,
                             help="Log requests to stderr")

    parser = argparse.ArgumentParser(
        prog="quickprom",
        description="Run queries against Prometheus-compatible databases",
        epilog=TIME_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[global_opts],
    )
    parser.add_argument("--version", action="version", version="quickprom 0.1.0")

    sub = parser.add_subparsers(dest="command")

    p_query = sub.add_parser("query", parents=[global_opts], help="Instant query")
    p_query.add_argument("query", metavar="QUERY")
    p_query.add_argument("--time", "-i", metavar="TIME",
                         help="Evaluate instant query at TIME (default: now)")

    p_range = sub.add_parser("range", parents=[global_opts], help="Range query")
    p_range.add_argument("query", metavar="QUERY")
    p_range.add_argument("--start", "-s", metavar="START", required=True,
                         help="Start time of range query")
    p_range.add_argument("--end", "-e", metavar="END",
                         help="End time of range query (inclusive, default: now)")
    p_range.add_argument("--step", "-p", metavar="STEP", required=True,
                         help="Step of range query")

    return parser


# options whose value is the next argument
_VALUE_OPTS = {
    "--target", "-t", "--basic-auth", "--timeout",
    "--time", "-i", "--start", "-s", "--end", "-e", "--step", "-p",
}


def _normalize_argv(argv: list[str]) -> list[str]:
    """Treat a bare `quickprom QUERY` as `quickprom query QUERY`.

    Only the first positional can name a subcommand, and only when a QUERY
    follows it, so `quickprom -t URL query` asks for the metric `query`.
    """
    positional = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg in ("-h", "--help", "--version"):
            return argv
        if arg in _VALUE_OPTS:
            i += 2
            continue
        if not arg.startswith("-") or arg == "-":
            positional.append(arg)
        i += 1
    if len(positional) > 1 and positional[0] in ("query", "range"):
        return argv
    return ["query"] + argv


def parse_options(argv: list[str], environ: Mapping[str, str] | None = None,
                  now: datetime | None = None) -> QuickPromOptions:
    """Merge environment and command line (command line wins) and validate."""
    environ = os.environ if environ is None else environ
    parser = build_parser()
    args = parser.parse_args(_normalize_argv(argv))

    opts = QuickPromOptions()
    timeout_input = None

    for dest, var in ENV_VARS.items():
        if var not in environ:
            continue
        raw = environ[var]
        if dest == "timeout":
            timeout_input = raw
        elif isinstance(getattr(opts, dest), bool):
            try:
                setattr(opts, dest, parse_bool(raw))
            except ValueError as e:
                raise OptionsError(f"{var}: {e}") from None
        else:
            setattr(opts, dest, raw)

    for dest in ("target", "skip_tls_verify", "basic_auth", "cf_auth", "json",
                 "range_table", "ascii", "verbose"):
        val = getattr(args, dest, None)
        if val is not None:
            setattr(opts, dest, val)
    if getattr(args, "timeout", None) is not None:
        timeout_input = args.timeout

    opts.query = args.query
    opts.range_enabled = args.command == "range"
    _validate(opts, args, timeout_input, now or datetime.now().astimezone())
    return opts


def _validate(opts: QuickPromOptions, args: argparse.Namespace,
              timeout_input: str | None, now: datetime) -> None:
    if not opts.target:
        raise OptionsError("must specify target URL with --target or QUICKPROM_TARGET")

    if opts.basic_auth and ":" not in opts.basic_auth:
        raise OptionsError("must specify basic auth as USER:PASS")

    if timeout_input:
        try:
            opts.timeout = parse_duration(timeout_input)
        except ValueError as e:
            raise OptionsError(f"failed to parse --timeout: {e}") from None

    if opts.range_enabled:
        opts.range_start = _time_option("--start", args.start, now)
        opts.range_end = _time_option("--end", args.end, now) if args.end else now
        if opts.range_end < opts.range_start:
            raise OptionsError("--end before --start")
        try:
            opts.range_step = parse_duration(args.step)
        except ValueError as e:
            raise OptionsError(f"failed to parse --step: {e}") from None
        if opts.range_step <= timedelta(0):
            raise OptionsError("--step must be positive")
    else:
        opts.time = _time_option("--time", args.time, now) if args.time else now


def _time_option(name: str, val: str, now: datetime) -> datetime:
    try:
        return parse_time_arg(val, now=now)
    except ValueError as e:
        raise OptionsError(f"failed to parse {name}: {e}") from None
