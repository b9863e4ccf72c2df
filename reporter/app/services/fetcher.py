"""
Record retrieval from the records backend.

One GET per call, authorized with exactly one credential variant:

    SessionCookies  GET {base}/api/v1/students/{id}
                    Cookie: accessToken=...; csrfToken=...; refreshToken=...

    ServiceBearer   GET {base}/api/v1/internals/students/{id}
                    x-service-token: <token>

The timeout is fixed at 10 seconds. The body is read in full before the
status is inspected. Nothing is retried: fetches are user-triggered and
idempotent, so the caller may simply try again.
"""

import json
import logging
from typing import Dict

import httpx
from pydantic import ValidationError

from reporter.app.core.errors import (
    DecodeError,
    UpstreamStatusError,
    UpstreamUnavailable,
)
from reporter.app.schemas.credentials import (
    Credentials,
    ServiceBearer,
    SessionCookies,
)
from reporter.app.schemas.record import Record

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10.0
SERVICE_TOKEN_HEADER = "x-service-token"


def _cookie_header(credentials: SessionCookies) -> str:
    cookies = [
        ("accessToken", credentials.access.get_secret_value()),
        ("csrfToken", credentials.csrf.get_secret_value()),
        ("refreshToken", credentials.refresh.get_secret_value()),
    ]
    return "; ".join(f"{name}={value}" for name, value in cookies if value)


class RecordFetcher:
    """
    Async client for the records backend.

    The HTTP client is injected so that the connection pool is shared
    across requests and can be swapped for a mock transport in tests.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = http_client
        self.timeout = timeout

    def _request_for(self, record_id: int, credentials: Credentials):
        if isinstance(credentials, ServiceBearer):
            url = f"{self.base_url}/api/v1/internals/students/{record_id}"
            headers: Dict[str, str] = {
                SERVICE_TOKEN_HEADER: credentials.token.get_secret_value(),
            }
        elif isinstance(credentials, SessionCookies):
            url = f"{self.base_url}/api/v1/students/{record_id}"
            headers = {}
            cookie = _cookie_header(credentials)
            if cookie:
                headers["Cookie"] = cookie
        else:
            raise TypeError(
                f"unsupported credentials type {type(credentials).__name__}"
            )
        return url, headers

    async def fetch_record(
        self,
        record_id: int,
        credentials: Credentials,
    ) -> Record:
        """
        Fetch and decode a single record.

        Raises:
            UpstreamUnavailable: transport failure or timeout.
            UpstreamStatusError: the backend returned a non-200 status.
            DecodeError: the body is not a decodable record.
        """
        url, headers = self._request_for(record_id, credentials)

        logger.info(
            "fetching_record",
            extra={"url": url, "auth_kind": credentials.kind},
        )

        try:
            response = await self.client.get(
                url,
                headers=headers,
                timeout=self.timeout,
            )
            body = response.content
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(
                f"request to records backend timed out after "
                f"{self.timeout:g}s: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(
                f"failed to make request to records backend: {exc}"
            ) from exc

        if response.status_code != httpx.codes.OK:
            logger.warning(
                "upstream_status_error",
                extra={"url": url, "status_code": response.status_code},
            )
            raise UpstreamStatusError(response.status_code)

        return decode_record(body)


def decode_record(body: bytes) -> Record:
    """Decode a backend response body into a Record."""
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"failed to parse JSON response: {exc}") from exc

    if not isinstance(payload, dict):
        raise DecodeError(
            "failed to parse JSON response: expected an object, "
            f"got {type(payload).__name__}"
        )

    try:
        return Record.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"failed to parse JSON response: {exc}") from exc
