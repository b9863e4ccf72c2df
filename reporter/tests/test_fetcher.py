"""
RecordFetcher tests against an in-process mock backend.

Covers:
  - session cookies go to /api/v1/students/{id} as a Cookie header only
  - service tokens go to /api/v1/internals/students/{id} as a header only
  - the fixed 10-second timeout is applied to every request
  - transport failures, timeouts, non-200 statuses, bad bodies
"""

import json
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import pytest

from reporter.app.core.errors import (
    DecodeError,
    FetchError,
    UpstreamStatusError,
    UpstreamUnavailable,
)
from reporter.app.schemas.credentials import ServiceBearer, SessionCookies
from reporter.app.services.fetcher import RecordFetcher
from reporter.tests.fixtures.records import student_payload

pytestmark = pytest.mark.anyio

BASE_URL = "http://backend.test"

SESSION = SessionCookies(access="acc-token", csrf="csrf-value", refresh="ref-token")
SERVICE = ServiceBearer(token="svc-token")


@asynccontextmanager
async def _fetcher(handler) -> AsyncIterator[RecordFetcher]:
    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield RecordFetcher(BASE_URL + "/", client)


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=student_payload())


# ---------------------------------------------------------------------------
# Credential attachment
# ---------------------------------------------------------------------------

async def test_session_cookies_are_sent_as_cookies_only():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(request)

    async with _fetcher(handler) as fetcher:
        record = await fetcher.fetch_record(42, SESSION)

    request = seen[0]
    assert record.id == 42
    assert request.method == "GET"
    assert str(request.url) == f"{BASE_URL}/api/v1/students/42"
    assert request.headers["cookie"] == (
        "accessToken=acc-token; csrfToken=csrf-value; refreshToken=ref-token"
    )
    assert "x-service-token" not in request.headers


async def test_empty_refresh_cookie_is_omitted():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(request)

    credentials = SessionCookies(access="acc-token", csrf="csrf-value")
    async with _fetcher(handler) as fetcher:
        await fetcher.fetch_record(1, credentials)

    assert seen[0].headers["cookie"] == "accessToken=acc-token; csrfToken=csrf-value"


async def test_service_token_is_sent_as_header_only():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(request)

    async with _fetcher(handler) as fetcher:
        await fetcher.fetch_record(42, SERVICE)

    request = seen[0]
    assert str(request.url) == f"{BASE_URL}/api/v1/internals/students/42"
    assert request.headers["x-service-token"] == "svc-token"
    assert "cookie" not in request.headers


async def test_fixed_timeout_is_applied():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _ok(request)

    async with _fetcher(handler) as fetcher:
        await fetcher.fetch_record(42, SERVICE)

    assert seen[0].extensions["timeout"] == {
        "connect": 10.0,
        "read": 10.0,
        "write": 10.0,
        "pool": 10.0,
    }


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

async def test_non_200_raises_status_error_with_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"success": False, "message": "Student not found"})

    with pytest.raises(UpstreamStatusError) as exc_info:
        async with _fetcher(handler) as fetcher:
            await fetcher.fetch_record(999, SERVICE)

    assert exc_info.value.status_code == 404
    assert "404" in str(exc_info.value)


async def test_timeout_raises_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        async with _fetcher(handler) as fetcher:
            await fetcher.fetch_record(42, SERVICE)

    assert isinstance(exc_info.value.__cause__, httpx.TimeoutException)


async def test_connection_failure_raises_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        async with _fetcher(handler) as fetcher:
            await fetcher.fetch_record(42, SESSION)


async def test_malformed_body_raises_decode_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(DecodeError):
        async with _fetcher(handler) as fetcher:
            await fetcher.fetch_record(42, SERVICE)


async def test_requests_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, content=b"unavailable")

    with pytest.raises(FetchError):
        async with _fetcher(handler) as fetcher:
            await fetcher.fetch_record(42, SERVICE)

    assert len(calls) == 1


async def test_tolerant_decoding_over_the_wire():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps({"id": 5}).encode())

    async with _fetcher(handler) as fetcher:
        record = await fetcher.fetch_record(5, SERVICE)

    assert record.id == 5
    assert record.name == ""
