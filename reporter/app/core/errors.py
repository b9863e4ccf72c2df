"""
Error taxonomy for the report service.

Every failure raised by this package derives from ReportServiceError so
the HTTP boundary can map whole families onto responses without knowing
individual causes.

    ConfigurationError   settings or signing secret unusable (startup)
    FetchError           the record could not be obtained from the backend
    RenderError          the record could not be turned into a document

Fetch failures are never retried here. The caller owns that decision.
"""


class ReportServiceError(Exception):
    """Base class for all report service failures."""


# ---------------------------------------------------------------------------
# Configuration / signing
# ---------------------------------------------------------------------------


class ConfigurationError(ReportServiceError):
    """Raised when required configuration is missing or invalid."""


class SigningError(ConfigurationError):
    """Raised when a token cannot be issued (empty secret, signer failure)."""


# ---------------------------------------------------------------------------
# Record fetch
# ---------------------------------------------------------------------------


class FetchError(ReportServiceError):
    """
    Opaque record fetch failure.

    The message carries the detail intended for logs and for the
    HTTP error body.
    """


class UpstreamUnavailable(FetchError):
    """Transport failure or timeout while talking to the backend."""


class UpstreamStatusError(FetchError):
    """The backend answered with a non-200 status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"api returned status code: {status_code}")


class DecodeError(FetchError):
    """The backend response body could not be decoded into a record."""


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class RenderError(ReportServiceError):
    """Base class for document rendering failures."""


class EncodeError(RenderError):
    """A text value contains characters the content stream cannot carry."""


class RenderInvariantError(RenderError):
    """
    Internal structure check failed while serializing a document.

    Indicates a programming error. Rendering is aborted so that no
    corrupt document leaves the process.
    """
