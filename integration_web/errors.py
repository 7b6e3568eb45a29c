"""
Exception types for the integration.
Exchange errors carry the upstream status and a short detail so the landing endpoint
can log them; none of them ever include the client secret.
"""


class ConfigurationError(RuntimeError):
    """Missing or malformed configuration; fatal at startup."""


class SessionStoreError(RuntimeError):
    """The session token store could not be read or written."""


class LoginRequired(Exception):
    """Raised by the authentication gate when the session has no usable token."""


class ExchangeError(Exception):
    """Base for failures while exchanging an authorization code for a token."""

    def __init__(self, detail: str, *, status: int | None = None, retry_after: float | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status = status
        # Seconds from the upstream Retry-After header, when it sent one
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, detail={self.detail!r})"


class TransportError(ExchangeError):
    """Network-level failure (connect error, timeout, dropped connection)."""


class RateLimited(ExchangeError):
    """HTTP 429 from the authorization server."""

    def __init__(self, detail: str, *, retry_after: float | None = None) -> None:
        super().__init__(detail, status=429, retry_after=retry_after)


class UpstreamUnavailable(ExchangeError):
    """HTTP 5xx from the authorization server."""


class UpstreamRejected(ExchangeError):
    """Non-429 4xx from the authorization server; never retried."""


class MalformedTokenResponse(ExchangeError):
    """2xx response that is not JSON or lacks access_token / expires_in."""


class ExchangeExhausted(ExchangeError):
    """Every attempt allowed by the retry budget failed."""

    def __init__(self, attempts: int, last_error: ExchangeError) -> None:
        super().__init__(
            f"gave up after {attempts} attempts: {last_error.detail}",
            status=last_error.status,
        )
        self.attempts = attempts
        self.last_error = last_error
