"""
Integration Web configuration.
Built once at startup from the environment and passed explicitly to each component.
CLIENT_ID and CLIENT_SECRET are required; everything else has a development default.
"""
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from integration_web.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Provider endpoints (Webex by default)
DEFAULT_AUTHORIZE_URL = "https://webexapis.com/v1/authorize"
DEFAULT_ACCESS_TOKEN_URL = "https://webexapis.com/v1/access_token"

# URL users will visit after successfully authenticating
DEFAULT_REDIRECT_URI = "http://localhost:4242"

# Permissions users must grant the integration, separated by spaces
DEFAULT_SCOPE = "cjp:config_read cjp:config_write"

# Only fit for local development; a warning is logged when it is used
DEFAULT_SESSION_SECRET = "development"

# Two weeks, same as Starlette's SessionMiddleware default
DEFAULT_SESSION_MAX_AGE = 14 * 24 * 60 * 60


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str = field(repr=False)
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    access_token_url: str = DEFAULT_ACCESS_TOKEN_URL
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE
    session_secret: str = field(default=DEFAULT_SESSION_SECRET, repr=False)
    host: str = "0.0.0.0"
    port: int = 10000
    # Transport-level timeout (seconds) for each attempt against the token endpoint
    http_timeout: float = 10.0
    # Retries beyond the first attempt
    http_retries: int = 3
    # SQLAlchemy URL for a persistent session token store; None keeps tokens in memory
    session_store_url: str | None = None
    session_max_age: int = DEFAULT_SESSION_MAX_AGE
    # Seconds a login attempt (state value) stays valid
    login_flow_ttl: int = 600
    log_level: str = "INFO"


def _required(environ: Mapping[str, str], name: str) -> str:
    value = (environ.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"{name} must be set (client id/secret pair from the developer portal)")
    return value


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Read settings from the environment (or the given mapping).
    Raises ConfigurationError when credentials are missing or a numeric option is malformed.
    """
    env = os.environ if environ is None else environ

    session_secret = env.get("SESSION_SECRET") or DEFAULT_SESSION_SECRET
    if session_secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET not set; using the development default")

    port = _int(env, "PORT", 10000)
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")
    retries = _int(env, "HTTP_RETRIES", 3)
    if retries < 0:
        raise ConfigurationError("HTTP_RETRIES must not be negative")

    return Settings(
        client_id=_required(env, "CLIENT_ID"),
        client_secret=_required(env, "CLIENT_SECRET"),
        authorize_url=env.get("AUTH_AUTHORIZE_URL") or DEFAULT_AUTHORIZE_URL,
        access_token_url=env.get("AUTH_ACCESS_TOKEN_URL") or DEFAULT_ACCESS_TOKEN_URL,
        redirect_uri=env.get("REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        scope=env.get("SCOPE") or DEFAULT_SCOPE,
        session_secret=session_secret,
        host=env.get("HOST") or "0.0.0.0",
        port=port,
        http_timeout=_float(env, "HTTP_TIMEOUT", 10.0),
        http_retries=retries,
        session_store_url=(env.get("SESSION_STORE_URL") or "").strip() or None,
        session_max_age=_int(env, "SESSION_MAX_AGE", DEFAULT_SESSION_MAX_AGE),
        login_flow_ttl=_int(env, "LOGIN_FLOW_TTL", 600),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
