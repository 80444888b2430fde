import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from sav.app import create_app
from sav.config import ProviderCredentials, Settings
from sav.context import AppContext


def fake_provider_handler(request: httpx.Request) -> httpx.Response:
    """
    Stand-in for the Google and Facebook endpoints.

    Codes look like "good-<subject>": the exchange succeeds and the profile
    endpoint answers with <subject>. Any other code is refused with a 400.
    """
    host, path = request.url.host, request.url.path

    if host == "oauth2.googleapis.com" and path == "/token":
        code = parse_qs(request.content.decode())["code"][0]
    elif host == "graph.facebook.com" and path.endswith("/oauth/access_token"):
        code = request.url.params["code"]
    elif host == "www.googleapis.com" and path == "/oauth2/v3/userinfo":
        token = request.headers["Authorization"].split(" ", 1)[1]
        return httpx.Response(200, json={"sub": token.removeprefix("tok-")})
    elif host == "graph.facebook.com" and path == "/me":
        token = request.url.params["access_token"]
        return httpx.Response(200, json={"id": token.removeprefix("tok-")})
    else:
        return httpx.Response(404, json={"error": "not_found"})

    if not code.startswith("good-"):
        return httpx.Response(400, json={"error": "invalid_grant"})
    return httpx.Response(200, json={"access_token": "tok-" + code.removeprefix("good-")})


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        secret_key="test-session-secret",
        encryption_key="test-encryption-key",
        google=ProviderCredentials(
            client_id="google-client",
            client_secret="google-secret",
            callback_url="http://testserver/auth/google/secrets",
        ),
        facebook=ProviderCredentials(
            client_id="facebook-app",
            client_secret="facebook-secret",
            callback_url="http://testserver/auth/facebook/secrets",
        ),
        database_url=f"sqlite:///{tmp_path / 'sav.db'}",
    )


@pytest.fixture()
def http_client():
    client = httpx.Client(transport=httpx.MockTransport(fake_provider_handler))
    yield client
    client.close()


@pytest.fixture()
def ctx(settings, http_client):
    context = AppContext.create(settings, http=http_client)
    yield context
    context.close()


@pytest.fixture()
def store(ctx):
    return ctx.store


@pytest.fixture()
def client(ctx):
    with TestClient(create_app(ctx)) as c:
        yield c
