"""
Pytest fixtures for integration_web. The token endpoint is faked with httpx.MockTransport
so no test talks to a real provider.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from integration_web.config import Settings
from integration_web.main import create_app
from integration_web.retry import RetryPolicy
from integration_web.tests.helpers import FIXED_NOW_MS, FakeTokenEndpoint, RecordingTokenStore, token_json


@pytest.fixture
def settings():
    return Settings(
        client_id="client-123",
        client_secret="s3cret-value",
        authorize_url="https://idp.example/v1/authorize",
        access_token_url="https://idp.example/v1/access_token",
        redirect_uri="http://localhost:4242",
        scope="spark:people_read cjp:config_read",
        session_secret="test-session-secret",
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    return RetryPolicy(retries=3, sleep=sleeps.append)


@pytest.fixture
def token_store():
    return RecordingTokenStore()


@pytest.fixture
def endpoint():
    return FakeTokenEndpoint(token_json())


@pytest.fixture
def app(settings, token_store, endpoint, retry_policy):
    http_client = httpx.Client(transport=httpx.MockTransport(endpoint))
    return create_app(
        settings,
        token_store=token_store,
        http_client=http_client,
        retry_policy=retry_policy,
        clock=lambda: FIXED_NOW_MS,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
