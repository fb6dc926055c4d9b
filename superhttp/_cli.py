from __future__ import annotations

import json
import logging
import re
import sys
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, ArgumentTypeError
from typing import TYPE_CHECKING

from ._server import AppServer
from ._test import Test

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from ._server import Interface


class CLIArgs:
    target: str
    path: str
    method: str
    host: str | None
    secure: bool
    interface: Interface | None
    header: list[tuple[str, str]]
    data: str | None
    timeout: float
    redirects: int
    expect_status: int | None
    expect_header: list[tuple[str, str]]
    expect_body: str | None
    expect_body_match: str | None
    expect_json: str | None
    log_level: str


def _header(value: str) -> tuple[str, str]:
    name, sep, rest = value.partition(":")
    if not sep or not name.strip():
        msg = f"invalid header {value!r}, expected NAME:VALUE"
        raise ArgumentTypeError(msg)
    return name.strip(), rest.strip()


def main(argv: Sequence[str] | None = None) -> None:
    parser = ArgumentParser(
        description="Send one request and check the response",
        formatter_class=ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "target",
        help="the base URL to test, or the app to serve as 'module:attr' or just 'module', which implies 'app' for 'attr'",
    )
    parser.add_argument("path", nargs="?", default="/", help="the request path")
    parser.add_argument("--method", help="the request method", default="GET")
    parser.add_argument(
        "--host", help="the host to connect to for a served app", default=None
    )
    parser.add_argument(
        "--secure", help="use https for a running server", action="store_true"
    )
    parser.add_argument(
        "--interface",
        help="the interface of a served app, detected when not set",
        choices=["asgi", "wsgi"],
        default=None,
    )
    parser.add_argument(
        "--header",
        help="a request header as NAME:VALUE, can be repeated",
        type=_header,
        action="append",
        default=[],
    )
    parser.add_argument("--data", help="the raw request body", default=None)
    parser.add_argument(
        "--timeout", help="the request timeout in seconds", type=float, default=5.0
    )
    parser.add_argument(
        "--redirects", help="the number of redirects to follow", type=int, default=0
    )
    parser.add_argument(
        "--expect-status", help="the expected status code", type=int, default=None
    )
    parser.add_argument(
        "--expect-header",
        help="an expected response header as NAME:VALUE, can be repeated",
        type=_header,
        action="append",
        default=[],
    )
    parser.add_argument(
        "--expect-body", help="the exact expected response text", default=None
    )
    parser.add_argument(
        "--expect-body-match",
        help="a regular expression the response text must match",
        default=None,
    )
    parser.add_argument(
        "--expect-json",
        help="the expected response body as a JSON object or array",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="the log level",
        choices=["debug", "info", "warning", "error"],
        default="warning",
    )

    args = parser.parse_args(argv, namespace=CLIArgs())

    logging.basicConfig(level=args.log_level.upper())

    expected_json = None
    if args.expect_json is not None:
        expected_json = json.loads(args.expect_json)
        if not isinstance(expected_json, (dict, list)):
            parser.error("--expect-json must be a JSON object or array")

    app = (
        args.target
        if "://" in args.target
        else AppServer(args.target, interface=args.interface)
    )
    test = Test(app, args.method, args.path, host=args.host, secure=args.secure)
    test.timeout(args.timeout).redirects(args.redirects)
    for name, value in args.header:
        test.set(name, value)
    if args.data is not None:
        test.send(args.data)

    if args.expect_status is not None:
        test.expect(args.expect_status)
    for name, value in args.expect_header:
        test.expect(name, value)
    if args.expect_body is not None:
        test.expect(args.expect_body)
    if args.expect_body_match is not None:
        test.expect(re.compile(args.expect_body_match))
    if expected_json is not None:
        test.expect(expected_json)

    results: list[tuple[BaseException | None, httpx.Response | None]] = []
    test.end(lambda error, response: results.append((error, response)))
    error, response = results[0]

    if error is not None:
        print(f"{test.method} {test.url} failed: {error}", file=sys.stderr)  # noqa: T201
        sys.exit(1)
    if response is not None:
        print(  # noqa: T201
            f"{response.status_code} {response.reason_phrase} {test.url}",
            file=sys.stderr,
        )


if __name__ == "__main__":
    main()
