from collections.abc import Callable
from typing import Any

import httpx
import pytest

from ipverify.proxy.credentials import ProxyCredential
from ipverify.settings import settings

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Run every test without credential sources from the local environment."""
    monkeypatch.setattr(settings, "PROXY_SERVICE_URL", "")
    monkeypatch.setattr(settings, "PROXY_HOST", "")
    monkeypatch.setattr(settings, "PROXY_PORT", None)
    monkeypatch.setattr(settings, "PROXY_BASE_USER", "")
    monkeypatch.setattr(settings, "PROXY_PASS", "")
    monkeypatch.setattr(settings, "PROXY_USERNAME_TEMPLATE", "{base_user};zip.{postal_code}")
    monkeypatch.setattr(settings, "MAX_CANDIDATES", 0)
    monkeypatch.setattr(settings, "VERIFY_DEADLINE", 30.0)
    monkeypatch.setattr(settings, "GEO_TUNNEL_URL", "http://geo.test/json")
    monkeypatch.setattr(settings, "GEO_LOOKUP_URL", "https://lookup.test/")
    monkeypatch.setattr(
        settings, "IP_ECHO_URLS", ["http://echo-1.test", "http://echo-2.test", "http://echo-3.test"]
    )
    yield


@pytest.fixture
def template_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "PROXY_HOST", "gw.proxy.test")
    monkeypatch.setattr(settings, "PROXY_PORT", 7000)
    monkeypatch.setattr(settings, "PROXY_BASE_USER", "acct")
    monkeypatch.setattr(settings, "PROXY_PASS", "s3cret")
    yield settings


@pytest.fixture
def credential() -> ProxyCredential:
    return ProxyCredential(host="gw.proxy.test", port=7000, user="acct;zip.17101", password="s3cret")


@pytest.fixture
def mock_http(monkeypatch: pytest.MonkeyPatch) -> Callable[[Handler], list[httpx.Request]]:
    """Route every client built by http_utils.http_client to ``handler``.

    Returns the list the handled requests are recorded into.
    """

    def _install(handler: Handler) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def _client(**kwargs: Any) -> httpx.AsyncClient:
            kwargs.pop("transport", None)
            return httpx.AsyncClient(transport=httpx.MockTransport(_record), **kwargs)

        monkeypatch.setattr("ipverify.http_utils.http_client", _client)
        return seen

    return _install
