"""Shared helpers for integration_web tests."""
import re
from html import unescape
from urllib.parse import parse_qs, urlsplit

import httpx

from integration_web.token_store import InMemorySessionTokenStore

FIXED_NOW_MS = 1_700_000_000_000


class FakeTokenEndpoint:
    """MockTransport handler: replays queued responses (the last one repeats) and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def token_json(**overrides):
    data = {
        "access_token": "tok",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "rt",
        "refresh_token_expires_in": 86400,
    }
    data.update(overrides)
    return httpx.Response(200, json=data)


def login_href(page: str) -> str:
    match = re.search(r'<a href="([^"]+)">Login</a>', page)
    assert match, "login link not found"
    return unescape(match.group(1))


def login_query(page: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(login_href(page)).query)


class RecordingTokenStore(InMemorySessionTokenStore):
    """In-memory store that remembers which session ids the app asked about."""

    def __init__(self, ttl_seconds=None):
        super().__init__(ttl_seconds=ttl_seconds)
        self.session_ids: set[str] = set()

    def get(self, session_id):
        self.session_ids.add(session_id)
        return super().get(session_id)

    def set(self, session_id, record):
        self.session_ids.add(session_id)
        super().set(session_id, record)

    def records(self):
        """Token records currently held for every session the app has seen."""
        return [r for r in (self.get(sid) for sid in list(self.session_ids)) if r is not None]
