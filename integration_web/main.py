"""
Integration Web: OAuth2 authorization code client.
GET / is both the entry point and the redirect_uri callback; GET /home is the protected area.
Port 10000 by default (PORT).
"""
import html
import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Annotated

import httpx
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from integration_web.config import Settings, load_settings
from integration_web.errors import ExchangeError, LoginRequired, SessionStoreError
from integration_web.flow_store import PendingLoginStore
from integration_web.gate import (
    AuthState,
    RequireAuthentication,
    get_session_id,
    get_token_store,
    now_millis,
    resolve_state,
)
from integration_web.logging_config import configure_logging
from integration_web.login_url import build_login_url, generate_state
from integration_web.models import TokenRecord
from integration_web.retry import RetryPolicy
from integration_web.token_exchange import TokenExchangeClient, epoch_millis
from integration_web.token_store import SessionTokenStore, build_token_store

logger = logging.getLogger(__name__)

HOME_PATH = "/home"
UNAVAILABLE_MESSAGE = "Unable to contact authentication server, please try again later."

router = APIRouter()


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body style="padding: 20%">
{body}
</body>
</html>"""


def _login_page(login_url: str) -> str:
    return _page(
        "My Integration",
        f"""  <h1>Welcome!</h1>
  <a href="{html.escape(login_url, quote=True)}">Login</a>""",
    )


def _error_page(heading: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        _page(
            heading,
            f"""  <h1>{html.escape(heading)}</h1>
  <p>{html.escape(message)}</p>
  <p><a href="/">Home</a></p>""",
        ),
        status_code=status_code,
    )


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "integration_web"}


@router.get("/", response_class=HTMLResponse)
def landing(
    request: Request,
    session_id: Annotated[str, Depends(get_session_id)],
    store: Annotated[SessionTokenStore, Depends(get_token_store)],
    now_ms: Annotated[int, Depends(now_millis)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """
    authenticated (usable token)     -> redirect to /home
    anonymous (no token, no code)    -> login page
    authenticating (no token, code)  -> verify state, exchange code, store token, redirect to /home
    """
    settings: Settings = request.app.state.settings
    token = store.get(session_id)
    auth_state = resolve_state(token, code, now_ms)

    if auth_state is AuthState.AUTHENTICATED:
        return RedirectResponse(url=HOME_PATH, status_code=302)

    if auth_state is AuthState.ANONYMOUS:
        if error:
            # Provider sent the user back without a code (e.g. consent denied)
            logger.info("Provider returned error on redirect: %s", error)
            return _error_page("Login error", error_description or error, 400)
        login_state = generate_state()
        request.app.state.pending_logins.store(login_state, session_id)
        return HTMLResponse(_login_page(build_login_url(settings, login_state)))

    if not state or not request.app.state.pending_logins.consume(state, session_id):
        logger.warning("Rejected authorization callback with missing, unknown or foreign state")
        return _error_page("Error", "Invalid or expired login attempt. Please try logging in again.", 400)

    exchange: TokenExchangeClient = request.app.state.token_exchange
    result = exchange.exchange_code_for_token(code)
    if isinstance(result, ExchangeError):
        logger.error("Token exchange failed: %r", result)
        return _error_page("Service unavailable", UNAVAILABLE_MESSAGE, 503)

    # Written before the redirect so the next request already sees the token
    store.set(session_id, result)
    logger.info("Session authenticated")
    return RedirectResponse(url=HOME_PATH, status_code=302)


@router.get(HOME_PATH, response_class=HTMLResponse)
def home(token: TokenRecord = RequireAuthentication):
    """Example protected route."""
    return HTMLResponse(
        _page(
            "My Integration",
            f"""  <h1>Welcome!</h1>
  Your token will expire at {html.escape(token.expires_at_iso())}.
  <p><a href="/logout">Log out</a></p>""",
        )
    )


@router.get("/logout")
def logout(
    session_id: Annotated[str, Depends(get_session_id)],
    store: Annotated[SessionTokenStore, Depends(get_token_store)],
):
    """Forget this session's token and go back to the entry point."""
    store.delete(session_id)
    return RedirectResponse(url="/", status_code=302)


async def _login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url="/", status_code=302)


async def _session_store_error_handler(request: Request, exc: SessionStoreError):
    logger.error("Session store failure on %s: %s", request.url.path, exc)
    return _error_page("Error", "Something went wrong, please try again later.", 500)


def create_app(
    settings: Settings | None = None,
    *,
    token_store: SessionTokenStore | None = None,
    http_client: httpx.Client | None = None,
    retry_policy: RetryPolicy | None = None,
    clock: Callable[[], int] = epoch_millis,
) -> FastAPI:
    """
    Build the app. Settings come from the environment when not given
    (ConfigurationError if CLIENT_ID / CLIENT_SECRET are missing).
    """
    settings = settings or load_settings()
    owns_client = http_client is None
    http_client = http_client or httpx.Client(timeout=settings.http_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Token endpoint: %s", settings.access_token_url)
        yield
        if owns_client:
            http_client.close()

    app = FastAPI(title="Integration Web", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.clock = clock
    app.state.token_store = token_store or build_token_store(
        settings.session_store_url, ttl_seconds=settings.session_max_age
    )
    app.state.pending_logins = PendingLoginStore(ttl_seconds=settings.login_flow_ttl)
    app.state.token_exchange = TokenExchangeClient(
        settings,
        http_client,
        retry_policy=retry_policy or RetryPolicy(retries=settings.http_retries),
        clock=clock,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        https_only=settings.redirect_uri.startswith("https://"),
    )
    app.add_exception_handler(LoginRequired, _login_required_handler)
    app.add_exception_handler(SessionStoreError, _session_store_error_handler)
    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: load env file, configure logging, serve on HOST:PORT."""
    import uvicorn

    load_dotenv(os.environ.get("ENV_FILE", "config/.env"))
    configure_logging(os.environ.get("LOG_LEVEL") or "INFO")
    settings = load_settings()
    logger.info("Running on port %d", settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
