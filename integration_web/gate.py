"""
Authentication gate: per-request routing state and the dependency that protects routes.
State is derived on every request from the session token and the presence of a code;
it is never stored.
"""
import enum
import secrets
from typing import Annotated

from fastapi import Depends, Request

from integration_web.errors import LoginRequired
from integration_web.models import TokenRecord
from integration_web.token_store import SessionTokenStore

SESSION_ID_KEY = "sid"


class AuthState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


def token_is_usable(token: TokenRecord | None, now_ms: int) -> bool:
    """A token counts only while its access token has not expired."""
    return token is not None and not token.is_expired(now_ms)


def resolve_state(token: TokenRecord | None, code: str | None, now_ms: int) -> AuthState:
    """Token first, then absence of a code, else a code is waiting to be exchanged."""
    if token_is_usable(token, now_ms):
        return AuthState.AUTHENTICATED
    if not code:
        return AuthState.ANONYMOUS
    return AuthState.AUTHENTICATING


def get_session_id(request: Request) -> str:
    """Opaque session id from the signed session cookie; issued on first contact."""
    sid = request.session.get(SESSION_ID_KEY)
    if not sid:
        sid = secrets.token_urlsafe(32)
        request.session[SESSION_ID_KEY] = sid
    return sid


def get_token_store(request: Request) -> SessionTokenStore:
    return request.app.state.token_store


def now_millis(request: Request) -> int:
    return request.app.state.clock()


def get_session_token(
    session_id: Annotated[str, Depends(get_session_id)],
    store: Annotated[SessionTokenStore, Depends(get_token_store)],
    now_ms: Annotated[int, Depends(now_millis)],
) -> TokenRecord | None:
    """Usable token for this session, or None. Store failures propagate (SessionStoreError)."""
    token = store.get(session_id)
    return token if token_is_usable(token, now_ms) else None


def require_authentication(
    token: Annotated[TokenRecord | None, Depends(get_session_token)],
) -> TokenRecord:
    """Dependency for protected routes: no usable token -> LoginRequired (redirect to /)."""
    if token is None:
        raise LoginRequired()
    return token


RequireAuthentication = Depends(require_authentication)
