#!/usr/bin/env python3
"""
logship CLI
Reads lines from stdin and ships each one as a log record
"""

import argparse
import json
import logging
import sys
import threading

from rich.console import Console
from rich.table import Table

from .errors import ConfigurationError
from .shipper import LogShipper

# Rich console for pretty output (stderr, stdin/stdout stay usable in pipes)
console = Console(stderr=True)


def _parse_field(value: str) -> tuple[str, str]:
    key, sep, field_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {value!r}")
    return key, field_value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logship", description="Ship stdin lines to a log listener"
    )
    parser.add_argument("--token", required=True, help="Listener account token")
    parser.add_argument("--host", help="Listener host")
    parser.add_argument("--port", type=int, help="Listener port (default: 8070/8071)")
    parser.add_argument("--protocol", choices=["http", "https"], default="http")
    parser.add_argument("--type", dest="log_type", default="generic", help="Log type tag")
    parser.add_argument("--interval", type=float, default=10.0, help="Seconds between timed flushes")
    parser.add_argument("--buffer-size", type=int, default=100)
    parser.add_argument("--retries", type=int, default=3)
    parser.add_argument("--timeout", type=float, help="Per-attempt timeout in seconds")
    parser.add_argument(
        "--field", action="append", type=_parse_field, default=[], metavar="KEY=VALUE",
        help="Static field added to every record (repeatable)",
    )
    parser.add_argument("--json", action="store_true", help="Parse each line as a JSON object")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    return parser


class FailureCounter:
    """Result callback counting failed batches."""

    def __init__(self):
        self.failures = 0
        self._lock = threading.Lock()

    def __call__(self, error):
        if error is not None:
            with self._lock:
                self.failures += 1
            console.print(f"[red]✗[/red] {error}")


def _parse_line(line: str, as_json: bool):
    if as_json:
        try:
            value = json.loads(line)
        except ValueError:
            return line
        if isinstance(value, dict):
            return value
    return line


def print_stats(stats: dict):
    table = Table(title="logship")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in stats.items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


def main(argv=None, stdin=None) -> int:
    args = build_parser().parse_args(argv)
    stdin = stdin or sys.stdin

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    failures = FailureCounter()
    options = {
        "token": args.token,
        "protocol": args.protocol,
        "log_type": args.log_type,
        "send_interval": args.interval,
        "buffer_size": args.buffer_size,
        "number_of_retries": args.retries,
        "extra_fields": dict(args.field),
        "debug": args.verbose,
        "on_result": failures,
    }
    if args.host:
        options["host"] = args.host
    if args.port:
        options["port"] = args.port
    if args.timeout:
        options["timeout"] = args.timeout

    try:
        shipper = LogShipper(**options).start()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        return 2

    count = 0
    try:
        for line in stdin:
            line = line.rstrip("\r\n")
            if not line:
                continue
            shipper.log(_parse_line(line, args.json))
            count += 1
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
    finally:
        shipper.close()

    console.print(f"[green]✓[/green] Read {count} lines")
    print_stats(shipper.get_stats())
    return 1 if failures.failures else 0


if __name__ == "__main__":
    sys.exit(main())
