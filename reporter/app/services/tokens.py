"""
Token issuance for authorizing record fetches.

Two token kinds are issued, both HS256 JWTs signed with a symmetric
secret:

    access token   short-lived (15 minutes). Carries ``csrf_hmac``, the
                   HMAC-SHA256 of a caller-held anti-forgery value, so
                   the token alone is not sufficient to pass the
                   backend's CSRF check.

    service token  carries only the ``service`` identity claim and has
                   no expiry. It is rotated out of band.

This module issues tokens only. Signature verification belongs to the
records backend. The CSRF binding rule is exposed through
``csrf_binding_matches`` so both sides agree on it.
"""

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt

from reporter.app.core.errors import SigningError

ALGORITHM = "HS256"
ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)


def compute_csrf_hmac(csrf_value: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``csrf_value`` keyed with ``secret``."""
    return hmac.new(
        secret.encode("utf-8"),
        csrf_value.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def csrf_binding_matches(csrf_hmac: str, presented_value: str, secret: str) -> bool:
    """
    Check a presented anti-forgery value against a token's ``csrf_hmac``.

    The pair is accepted only if the keyed hash of the presented value
    equals the bound claim. Comparison is constant-time.
    """
    if not csrf_hmac or not secret:
        return False
    expected = compute_csrf_hmac(presented_value, secret)
    return hmac.compare_digest(expected, csrf_hmac)


class TokenIssuer:
    """
    Issues access and service tokens under a single signing secret.

    The secret is checked at construction so that a misconfigured
    process fails at startup rather than on its first request.
    """

    def __init__(self, secret: str):
        if not secret:
            raise SigningError("signing secret is empty")
        self._secret = secret

    def issue_access_token(
        self,
        subject: str,
        *,
        now: Optional[datetime] = None,
    ) -> Tuple[str, str]:
        """
        Issue a short-lived access token bound to a fresh CSRF value.

        Returns:
            (token, csrf_value). The caller must present ``csrf_value``
            alongside the token on every call.
        """
        issued_at = now or datetime.now(timezone.utc)
        csrf_value = str(uuid.uuid4())

        claims = {
            "id": subject,
            "csrf_hmac": compute_csrf_hmac(csrf_value, self._secret),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ACCESS_TOKEN_LIFETIME).timestamp()),
        }
        return self._sign(claims), csrf_value

    def issue_service_token(self, subject: str) -> str:
        """Issue a non-expiring token identifying a calling service."""
        return self._sign({"service": subject})

    def _sign(self, claims: dict) -> str:
        try:
            return jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        except JWTError as exc:
            raise SigningError(f"failed to sign token: {exc}") from exc
