"""Fluent HTTP assertions against test servers, built on httpx."""

from ._agent import TestAgent, request
from ._errors import (
    ConfigurationError,
    ExpectationError,
    ServerAlreadyClosedError,
    ServerCloseError,
)
from ._expectations import (
    BodyExpectation,
    Expectation,
    HeaderExpectation,
    PredicateExpectation,
    StatusExpectation,
)
from ._server import AppServer, Interface, Listener, Server, ServerLifecycle
from ._test import Test

__all__ = [
    "AppServer",
    "BodyExpectation",
    "ConfigurationError",
    "Expectation",
    "ExpectationError",
    "HeaderExpectation",
    "Interface",
    "Listener",
    "PredicateExpectation",
    "Server",
    "ServerAlreadyClosedError",
    "ServerCloseError",
    "ServerLifecycle",
    "StatusExpectation",
    "Test",
    "TestAgent",
    "request",
]
