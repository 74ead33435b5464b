"""Testing utilities: intercept calls, fake responses and assert on the call log."""

from .assertions import HttpCallAssertion
from .http_test import HttpTest
from .matching import matches_pattern
from .responses import FakeResponse, FilteredHttpTestSetup, HttpTestSetup


__all__ = [
    "FakeResponse",
    "FilteredHttpTestSetup",
    "HttpCallAssertion",
    "HttpTest",
    "HttpTestSetup",
    "matches_pattern",
]
