"""
Configuration for the report service.

Pydantic v2 settings, read from ``REPORTER_*`` environment variables
(or a ``.env`` file). Secrets are held as SecretStr so they never show
up in logs or reprs.

Credential resolution happens once, at startup. Exactly one credential
variant is produced for the selected ``auth_mode``; if the mode has
neither a pre-issued token nor a secret to issue one, startup fails.
"""

from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from reporter.app.core.errors import ConfigurationError
from reporter.app.schemas.credentials import (
    Credentials,
    ServiceBearer,
    SessionCookies,
)
from reporter.app.services.tokens import TokenIssuer

# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

OptionalSecret = Annotated[
    Optional[SecretStr],
    Field(default=None, description="Sensitive credential, redacted from logs"),
]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.
    """

    # ---------------------------------------------------------------------
    # Records backend
    # ---------------------------------------------------------------------

    backend_url: Annotated[
        AnyHttpUrl,
        Field(
            default="http://localhost:5007",
            description="Base URL of the records backend",
        ),
    ]

    port: Annotated[
        int,
        Field(default=8080, ge=1, le=65535, description="HTTP listen port"),
    ]

    # ---------------------------------------------------------------------
    # Trust mechanism
    # ---------------------------------------------------------------------

    auth_mode: Annotated[
        Literal["service", "session"],
        Field(
            default="service",
            description=(
                "'service' sends a service token header; "
                "'session' replays user session cookies"
            ),
        ),
    ]

    # Service-to-service
    service_token: OptionalSecret
    service_token_secret: OptionalSecret
    service_name: Annotated[
        str,
        Field(
            default="golang-service",
            min_length=1,
            description="Subject of tokens issued by this service",
        ),
    ]

    # Replayed session
    access_token: OptionalSecret
    csrf_token: OptionalSecret
    refresh_token: OptionalSecret
    access_token_secret: OptionalSecret

    model_config = SettingsConfigDict(
        env_prefix="REPORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    @property
    def base_url(self) -> str:
        return str(self.backend_url).rstrip("/")

    def resolve_credentials(self) -> Credentials:
        """
        Build the single credential variant used for every fetch.

        Pre-issued tokens take precedence over signing secrets.
        """
        if self.auth_mode == "service":
            if _present(self.service_token):
                return ServiceBearer(token=self.service_token)
            if _present(self.service_token_secret):
                issuer = TokenIssuer(self.service_token_secret.get_secret_value())
                return ServiceBearer(
                    token=issuer.issue_service_token(self.service_name),
                )
            raise ConfigurationError(
                "auth_mode 'service' requires REPORTER_SERVICE_TOKEN "
                "or REPORTER_SERVICE_TOKEN_SECRET"
            )

        if _present(self.access_token) and _present(self.csrf_token):
            return SessionCookies(
                access=self.access_token,
                csrf=self.csrf_token,
                refresh=self.refresh_token or SecretStr(""),
            )
        if _present(self.access_token_secret):
            issuer = TokenIssuer(self.access_token_secret.get_secret_value())
            token, csrf_value = issuer.issue_access_token(self.service_name)
            return SessionCookies(
                access=SecretStr(token),
                csrf=SecretStr(csrf_value),
                refresh=self.refresh_token or SecretStr(""),
            )
        raise ConfigurationError(
            "auth_mode 'session' requires REPORTER_ACCESS_TOKEN and "
            "REPORTER_CSRF_TOKEN, or REPORTER_ACCESS_TOKEN_SECRET"
        )


def _present(value: Optional[SecretStr]) -> bool:
    return value is not None and bool(value.get_secret_value())


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
