"""
Credentials used to authorize a record fetch.

Two disjoint trust boundaries exist between this service and the
records backend:

    SessionCookies  a replayed user session (access, csrf, refresh)
    ServiceBearer   machine-to-machine trust via a signed service token

A fetch accepts exactly one ``Credentials`` value. Because the union is
discriminated on ``kind``, a call can never carry both variants, and it
cannot carry neither.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class SessionCookies(BaseModel):
    """Replayed user session, attached as three cookies."""

    kind: Literal["session"] = "session"

    access: SecretStr
    csrf: SecretStr
    refresh: SecretStr = SecretStr("")

    model_config = ConfigDict(frozen=True, extra="forbid")


class ServiceBearer(BaseModel):
    """Long-lived service token, attached as a single header."""

    kind: Literal["service"] = "service"

    token: SecretStr

    model_config = ConfigDict(frozen=True, extra="forbid")


CredentialVariant = Union[SessionCookies, ServiceBearer]

Credentials = Annotated[
    CredentialVariant,
    Field(discriminator="kind"),
]
