"""
Login URL for the provider's authorize endpoint, plus state generation.
"""
import secrets
from urllib.parse import quote

from integration_web.config import Settings

# Characters left alone by JS encodeURIComponent / encodeURI
_COMPONENT_SAFE = "-_.!~*'()"
_URI_SAFE = _COMPONENT_SAFE + ";,/?:@&=+$#"


def generate_state() -> str:
    """Unguessable per-attempt value; checked against the session on the way back."""
    return secrets.token_urlsafe(32)


def _component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


def build_login_url(settings: Settings, state: str) -> str:
    """
    Authorize URL with client_id, response_type=code, redirect_uri, scope and state.
    Each parameter is encoded as a single component; the base URL is encoded as a whole URI.
    The client secret is never part of this URL.
    """
    base = quote(settings.authorize_url, safe=_URI_SAFE)
    params = [
        ("client_id", settings.client_id),
        ("response_type", "code"),
        ("redirect_uri", settings.redirect_uri),
        ("scope", settings.scope),
        ("state", state),
    ]
    query = "&".join(f"{name}={_component(value)}" for name, value in params)
    return f"{base}?{query}"
