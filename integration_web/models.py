"""
Token record stored against a session after a successful code exchange, plus the
SQLAlchemy table used when sessions are persisted.
Expiry fields are absolute epoch milliseconds, fixed at exchange time.
"""
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from integration_web.errors import MalformedTokenResponse


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Longest duration accepted from a provider; anything beyond is treated as malformed
MAX_DURATION_SECONDS = 100 * 365 * 24 * 60 * 60


def _seconds(payload: Mapping[str, Any], key: str) -> float | None:
    """Finite duration in [0, MAX_DURATION_SECONDS] seconds, else None."""
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or not 0 <= seconds <= MAX_DURATION_SECONDS:
        return None
    return seconds


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    token_type: str
    expires_at: int
    refresh_token: str | None = None
    refresh_expires_at: int | None = None
    scope: str | None = None

    @classmethod
    def from_token_response(cls, payload: Any, now_ms: int) -> "TokenRecord":
        """
        Build a record from the token endpoint's JSON body.
        expires_in / refresh_token_expires_in (seconds) are turned into absolute
        instants relative to now_ms; raw durations are not kept.
        """
        if not isinstance(payload, Mapping):
            raise MalformedTokenResponse("token response is not a JSON object")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MalformedTokenResponse("token response has no access_token")
        expires_in = _seconds(payload, "expires_in")
        if expires_in is None:
            raise MalformedTokenResponse("token response has no numeric expires_in")

        refresh_expires_in = _seconds(payload, "refresh_token_expires_in")
        refresh_expires_at = None
        if refresh_expires_in is not None:
            refresh_expires_at = now_ms + int(refresh_expires_in * 1000)

        return cls(
            access_token=access_token,
            token_type=payload.get("token_type") or "Bearer",
            expires_at=now_ms + int(expires_in * 1000),
            refresh_token=payload.get("refresh_token") or None,
            refresh_expires_at=refresh_expires_at,
            scope=payload.get("scope") or None,
        )

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    def expires_at_iso(self) -> str:
        """Access token expiry as an ISO-8601 UTC string (millisecond precision)."""
        dt = datetime.fromtimestamp(self.expires_at / 1000, tz=timezone.utc)
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenRecord":
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            expires_at=int(data["expires_at"]),
            refresh_token=data.get("refresh_token"),
            refresh_expires_at=(
                int(data["refresh_expires_at"]) if data.get("refresh_expires_at") is not None else None
            ),
            scope=data.get("scope"),
        )


class Base(DeclarativeBase):
    pass


class SessionToken(Base):
    """Persisted token record for one session (SqlSessionTokenStore)."""

    __tablename__ = "session_tokens"

    session_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_type: Mapped[str] = mapped_column(String(64), nullable=False)
    # Epoch milliseconds
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def to_record(self) -> TokenRecord:
        return TokenRecord(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_at=self.expires_at,
            refresh_token=self.refresh_token,
            refresh_expires_at=self.refresh_expires_at,
            scope=self.scope,
        )
