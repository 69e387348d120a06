"""CLI entry point for quickprom."""
from __future__ import annotations

import logging
import sys

from quickprom.options import OptionsError, QuickPromOptions, parse_options

log = logging.getLogger("quickprom")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    # Reduce noise from the HTTP stack
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def fail(msg: str) -> None:
    print(msg, file=sys.stderr)
    sys.exit(1)


def _get_auth(opts: QuickPromOptions):
    from quickprom.auth import AuthError, basic_auth, cf_auth
    if opts.cf_auth:
        try:
            return cf_auth()
        except AuthError as e:
            fail(f"Error: {e}")
    if opts.basic_auth:
        return basic_auth(opts.basic_auth)
    return None


def run_query(opts: QuickPromOptions, transport=None):
    """Run the configured query and return its QueryResult."""
    from quickprom.client import PrometheusClient, QueryError

    with PrometheusClient(opts.target, timeout=opts.timeout,
                          verify=not opts.skip_tls_verify,
                          auth=_get_auth(opts), transport=transport) as client:
        try:
            if opts.range_enabled:
                log.debug("range query %r from %s to %s step %s", opts.query,
                          opts.range_start, opts.range_end, opts.range_step)
                return client.query_range(opts.query, opts.range_start,
                                          opts.range_end, opts.range_step)
            log.debug("instant query %r at %s", opts.query, opts.time)
            return client.query(opts.query, opts.time)
        except QueryError as e:
            fail(f"Failed to run query: {e}")


def main(argv: list[str] | None = None, transport=None):
    argv = sys.argv[1:] if argv is None else argv
    try:
        opts = parse_options(argv)
    except OptionsError as e:
        fail(f"Error: {e}")

    setup_logging(opts.verbose)
    result = run_query(opts, transport=transport)

    if opts.json:
        from quickprom.formatters.json import render_json
        try:
            render_json(result)
        except ValueError as e:
            fail(f"Failed to marshal result to JSON: {e}")
        return

    from quickprom.formatting import NoRendererError, format_value
    from quickprom.formatters.human import TextRenderer, detect_ascii
    try:
        formatted = format_value(result)
    except NoRendererError as e:
        fail(f"No renderer available for result type {e.result_type!r}")

    renderer = TextRenderer(
        range_table=opts.range_table,
        ascii_mode=opts.ascii or detect_ascii(),
    )
    renderer.render(formatted)


if __name__ == "__main__":
    main()
