from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

import httpx

from ._errors import ExpectationError

if TYPE_CHECKING:
    from collections.abc import Iterable

Callback = Callable[[BaseException | None, httpx.Response | None], Any]

# Distinguishes an omitted argument from an explicit None body.
MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class StatusExpectation:
    status: int


@dataclass(frozen=True, slots=True)
class BodyExpectation:
    body: Any


@dataclass(frozen=True, slots=True)
class HeaderExpectation:
    name: str
    value: str | int | re.Pattern[str]


@dataclass(frozen=True, slots=True)
class PredicateExpectation:
    check: Callable[[httpx.Response], Any]


Expectation = (
    StatusExpectation | BodyExpectation | HeaderExpectation | PredicateExpectation
)


def resolve(
    a: Any, b: Any = MISSING, c: Any = None
) -> tuple[list[Expectation], list[Callback]]:
    """Turns the arguments of one ``expect()`` call into expectations.

    Supported shapes::

        expect(check)
        expect(200[, callback])
        expect(200, body[, callback])
        expect(body[, callback])
        expect("Content-Type", "application/json"[, callback])

    Also returns any trailing callbacks, which trigger completion. A check
    function is never followed by a callback.
    """
    if callable(a):
        return [PredicateExpectation(a)], []

    callbacks = [cb for cb in (b, c) if cb is not MISSING and callable(cb)]

    if isinstance(a, int) and not isinstance(a, bool):
        expectations: list[Expectation] = [StatusExpectation(a)]
        if b is not MISSING and not callable(b):
            expectations.append(BodyExpectation(b))
        return expectations, callbacks

    if isinstance(b, (str, int, re.Pattern)) and not isinstance(b, bool):
        return [HeaderExpectation(str(a), b)], callbacks

    return [BodyExpectation(a)], callbacks


def parsed_body(response: httpx.Response) -> Any:
    """The response body decoded by content type.

    JSON and urlencoded forms are parsed, anything else is the raw bytes.
    """
    content_type = response.headers.get("content-type", "")
    mime = content_type.split(";")[0].strip().lower()
    if mime == "application/json" or mime.endswith("+json"):
        try:
            return response.json()
        except ValueError:
            return response.content
    if mime == "application/x-www-form-urlencoded":
        return dict(parse_qsl(response.text))
    return response.content


def _check_status(status: int, response: httpx.Response) -> ExpectationError | None:
    actual = response.status_code
    if actual == status:
        return None
    expected_reason = httpx.codes.get_reason_phrase(status)
    actual_reason = httpx.codes.get_reason_phrase(actual)
    return ExpectationError(
        f'expected {status} "{expected_reason}", got {actual} "{actual_reason}"',
        status,
        actual,
    )


def _check_body(body: Any, response: httpx.Response) -> ExpectationError | None:
    if isinstance(body, re.Pattern):
        if body.search(response.text) is None:
            return ExpectationError(
                f"expected body {response.text!r} to match {body.pattern!r}",
                body,
                response.text,
                show_diff=True,
            )
        return None

    if body is None or isinstance(body, (Mapping, list, tuple)):
        expected = list(body) if isinstance(body, tuple) else body
        actual = parsed_body(response)
        if expected != actual:
            return ExpectationError(
                f"expected {body!r} response body, got {actual!r}",
                body,
                actual,
                show_diff=True,
            )
        return None

    if isinstance(body, bytes):
        if body != response.content:
            return ExpectationError(
                f"expected {body!r} response body, got {response.content!r}",
                body,
                response.content,
                show_diff=True,
            )
        return None

    if body != response.text:
        return ExpectationError(
            f"expected {body!r} response body, got {response.text!r}",
            body,
            response.text,
            show_diff=True,
        )
    return None


def _check_header(
    name: str, value: str | int | re.Pattern[str], response: httpx.Response
) -> ExpectationError | None:
    values = response.headers.get_list(name)
    if not values:
        return ExpectationError(f'expected "{name}" header field', value, None)

    actual = ", ".join(values)
    if isinstance(value, re.Pattern):
        if value.search(actual) is None:
            return ExpectationError(
                f'expected "{name}" matching {value.pattern!r}, got "{actual}"',
                value,
                actual,
            )
    elif actual != str(value):
        return ExpectationError(
            f'expected "{name}" of "{value}", got "{actual}"', value, actual
        )
    return None


def _check_predicate(
    check: Callable[[httpx.Response], Any], response: httpx.Response
) -> BaseException | None:
    try:
        result = check(response)
    except Exception as e:
        result = e
    if isinstance(result, BaseException):
        return result
    return None


def evaluate(
    expectation: Expectation, response: httpx.Response
) -> BaseException | None:
    match expectation:
        case StatusExpectation(status=status):
            return _check_status(status, response)
        case BodyExpectation(body=body):
            return _check_body(body, response)
        case HeaderExpectation(name=name, value=value):
            return _check_header(name, value, response)
        case PredicateExpectation(check=check):
            return _check_predicate(check, response)


def assert_response(
    error: BaseException | None,
    response: httpx.Response | None,
    expectations: Iterable[Expectation],
) -> BaseException | None:
    """The single error to report for a settled request, if any.

    A request that produced no response reports its own error. Otherwise the
    first failing expectation wins, in declaration order, and later ones are
    not evaluated. When every expectation holds, the request error, if any,
    is still reported.
    """
    if response is None:
        return error
    for expectation in expectations:
        failure = evaluate(expectation, response)
        if failure is not None:
            return failure
    return error
