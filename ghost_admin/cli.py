"""CLI entry point for ghost-admin.

Sends a single request to the Ghost Admin API and streams the raw response
body to stdout.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO

from ghost_admin.client import AdminClient
from ghost_admin.config_loader import load_client_config
from ghost_admin.context import background, with_cancel, with_timeout
from ghost_admin.errors import APIError, GhostError


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def json_value(value: str) -> Any:
    """Parse a JSON request body given on the command line.

    Raises:
        argparse.ArgumentTypeError: If value is not valid JSON.
    """
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"Invalid JSON body: {e}")


@dataclass
class RequestArgs:
    """Parsed arguments for request mode."""

    method: str
    path: str
    config: Path
    data: Any
    timeout: float | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ghost-admin",
        description="Send requests to the Ghost Admin API.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    request_parser = subparsers.add_parser(
        "request",
        help="Send one request and write the raw response body to stdout",
    )
    request_parser.add_argument("method", help="HTTP method, e.g. GET")
    request_parser.add_argument(
        "path",
        help="Path relative to the base url, without a leading slash (e.g. ghost/api/admin/posts/)",
    )
    request_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to client config file (YAML)",
    )
    request_parser.add_argument(
        "--data",
        type=json_value,
        default=None,
        help="JSON request body",
    )
    request_parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help="Overall deadline for the call in seconds",
    )
    request_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log request details to stderr",
    )

    return parser


def parse_args(args: list[str] | None = None) -> RequestArgs:
    """Parse command line arguments."""
    namespace = build_parser().parse_args(args)
    return RequestArgs(
        method=namespace.method.upper(),
        path=namespace.path,
        config=namespace.config,
        data=namespace.data,
        timeout=namespace.timeout,
        verbose=namespace.verbose,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)
        if parsed.verbose:
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        return run_request(parsed, sys.stdout.buffer)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run_request(args: RequestArgs, out: BinaryIO) -> int:
    """Run request mode, writing the response body to ``out``."""
    try:
        config = load_client_config(args.config)
    except GhostError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    if args.timeout is not None:
        ctx, cancel = with_timeout(background(), args.timeout)
    else:
        ctx, cancel = with_cancel(background())

    try:
        with AdminClient.from_config(config) as client:
            request = client.new_request(args.method, args.path, args.data)
            client.do(ctx, request, out)
    except APIError as e:
        print(f"Error: API responded with status {e.status_code}", file=sys.stderr)
        return 1
    except GhostError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        cancel()

    out.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
