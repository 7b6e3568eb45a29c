"""
Authorization code -> token exchange against the provider's access token endpoint.
Client credentials are sent server-to-server only; the browser never sees them.
"""
import logging
import time
from collections.abc import Callable

import httpx

from integration_web.config import Settings
from integration_web.errors import ExchangeError, MalformedTokenResponse
from integration_web.models import TokenRecord
from integration_web.retry import RetryPolicy

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class TokenExchangeClient:
    def __init__(
        self,
        settings: Settings,
        http_client: httpx.Client,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._retry = retry_policy or RetryPolicy(retries=settings.http_retries)
        self._clock = clock

    def _form(self, code: str) -> dict[str, str]:
        return {
            "grant_type": "authorization_code",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
            "redirect_uri": self._settings.redirect_uri,
        }

    def _post(self, code: str) -> httpx.Response:
        return self._http.post(
            self._settings.access_token_url,
            data=self._form(code),
            headers={"Accept": "application/json"},
            timeout=self._settings.http_timeout,
        )

    def exchange_code_for_token(self, code: str) -> TokenRecord | ExchangeError:
        """
        Exchange a one-time authorization code for a TokenRecord.
        Failures are returned (not raised) as an ExchangeError subclass.
        """
        try:
            response = self._retry.send(lambda: self._post(code))
        except ExchangeError as e:
            return e

        try:
            payload = response.json()
        except ValueError:
            return MalformedTokenResponse("token response is not JSON", status=response.status_code)
        # Durations go stale as soon as they arrive: pin them to the clock right after the parse
        now_ms = self._clock()
        try:
            record = TokenRecord.from_token_response(payload, now_ms)
        except MalformedTokenResponse as e:
            e.status = response.status_code
            return e

        logger.info("Exchanged authorization code; access token expires at %s", record.expires_at_iso())
        return record
