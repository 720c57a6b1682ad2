"""Command-line interface for lazyhttp."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from rich.console import Console

from . import __version__
from .api import request
from .config import load_environment
from .exceptions import HTTPClientError
from .logging_utils import configure_logging
from .response import Response
from .structures import FileLike


def _pair(separator: str):
    def parse(value: str) -> Tuple[str, str]:
        key, sep, item = value.partition(separator)
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Expected KEY{separator}VALUE, got {value!r}")
        return key.strip(), item.strip()

    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazyhttp",
        description="Send one HTTP request and print the response.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("method", help="HTTP method, e.g. GET or POST")
    parser.add_argument("url", help="Absolute http:// or https:// URL")
    parser.add_argument("-H", "--header", action="append", type=_pair(":"), default=[], help="Request header K:V")
    parser.add_argument("-p", "--param", action="append", type=_pair("="), default=[], help="Query parameter K=V")

    body = parser.add_mutually_exclusive_group()
    body.add_argument("--data", help="Raw request body")
    body.add_argument("--data-file", type=Path, help="Stream the request body from a file")
    body.add_argument("--json", dest="json_body", help="JSON request body")
    body.add_argument("--form", action="append", type=_pair("="), default=[], help="Form field K=V")
    parser.add_argument("--file", action="append", type=_pair("="), default=[], help="Attach FIELD=PATH")

    parser.add_argument("--cookie", action="append", type=_pair("="), default=[], help="Cookie K=V")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds")
    parser.add_argument("--no-redirects", action="store_true", help="Do not follow redirects")
    parser.add_argument("--stream", action="store_true", help="Stream the response body")
    parser.add_argument("--lines", action="store_true", help="Print the body line by line")
    parser.add_argument("--show-history", action="store_true", help="Print every redirect hop")
    parser.add_argument("--log-json", action="store_true", help="Emit structured JSON logs to the log file")
    parser.add_argument("--log-file", type=Path, help="Write logs to the specified path")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("--quiet", action="store_true", help="Reduce logging output")
    return parser


def configure_cli_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    configure_logging(level=level, json_logs=args.log_json, logfile=args.log_file)


def request_options(args: argparse.Namespace) -> Dict[str, object]:
    """Translate parsed arguments into :func:`lazyhttp.build_request` options."""

    options: Dict[str, object] = {
        "headers": dict(args.header),
        "params": dict(args.param),
        "stream": args.stream or args.lines,
    }
    if args.form:
        options["data"] = dict(args.form)
    elif args.data is not None:
        options["data"] = args.data
    elif args.data_file is not None:
        options["data"] = args.data_file
    if args.json_body is not None:
        options["json"] = json.loads(args.json_body)
    if args.file:
        options["files"] = [FileLike.from_path(path, field_name=field) for field, path in args.file]
    if args.cookie:
        options["cookies"] = dict(args.cookie)
    if args.timeout is not None:
        options["timeout"] = args.timeout
    if args.no_redirects:
        options["allow_redirects"] = False
    return options


def _print_head(console: Console, response: Response) -> None:
    console.print(f"{response.status_code} {response.reason}  {response.url}", style="bold")
    for name, value in response.headers.items():
        console.print(f"{name}: {value}", highlight=False)


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_environment()
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_cli_logging(args)
    logger = logging.getLogger("lazyhttp.cli")
    console = Console(stderr=True, highlight=False)

    try:
        response = request(args.method, args.url, **request_options(args)).evaluate()
        hops: List[Response] = [response, *response.history]
        final = hops[-1]
        for hop in hops if args.show_history else [final]:
            _print_head(console, hop)
        if args.lines:
            for line in final.iter_lines():
                sys.stdout.write(line.decode(final.encoding, errors="replace") + "\n")
        else:
            sys.stdout.write(final.text)
        sys.stdout.flush()
    except (HTTPClientError, OSError, json.JSONDecodeError) as exc:
        logger.error("Request failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
