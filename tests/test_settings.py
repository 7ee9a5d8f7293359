import pytest
from pydantic import ValidationError

from ipverify.settings import Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.CREDENTIAL_TIMEOUT <= 5
    assert 8 <= settings.TUNNEL_TIMEOUT <= 10
    assert settings.PROXY_USERNAME_TEMPLATE == "{base_user};zip.{postal_code}"
    assert settings.GEO_TUNNEL_URL.startswith("http://")
    assert all(url.startswith("http://") for url in settings.IP_ECHO_URLS)


def test_reads_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROXY_HOST", "gw.proxy.test")
    monkeypatch.setenv("PROXY_PORT", "7000")
    monkeypatch.setenv("PROXY_BASE_USER", "acct")
    monkeypatch.setenv("PROXY_PASS", "s3cret")
    monkeypatch.setenv("IP_ECHO_URLS", '["http://echo.test"]')

    settings = Settings(_env_file=None)

    assert settings.PROXY_PORT == 7000
    assert settings.proxy_template_configured
    assert settings.IP_ECHO_URLS == ["http://echo.test"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"CREDENTIAL_TIMEOUT": 6},
        {"TUNNEL_TIMEOUT": 30},
        {"TUNNEL_TIMEOUT": 2},
        {"PROXY_PORT": 70000},
        {"MAX_CANDIDATES": -1},
    ],
)
def test_rejects_out_of_range_values(overrides: dict[str, float]):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_template_requires_every_field():
    settings = Settings(_env_file=None, PROXY_HOST="gw.proxy.test", PROXY_PORT=7000, PROXY_BASE_USER="acct")

    assert not settings.proxy_template_configured
