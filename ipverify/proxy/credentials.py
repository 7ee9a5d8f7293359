"""Proxy credential resolution for a postal-code routing hint.

Two strategies implement the same ``CredentialResolver`` protocol and are
tried in priority order: a remote credential service, then a local
username template over statically configured host/port/password.
"""

import re
from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ipverify import http_utils
from ipverify.errors import CredentialUnavailable
from ipverify.masking import mask_credential
from ipverify.settings import settings

logger = logger.bind(topic="proxy_credentials")


class ProxyCredential(BaseModel):
    """Connection parameters for one proxy egress, resolved per candidate."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    user: str = Field(min_length=1)
    password: str = Field(alias="pass", min_length=1)

    @property
    def server(self) -> str:
        return f"http://{self.host}:{self.port}"


class CredentialResolver(Protocol):
    name: str

    async def resolve(self, postal_code: str) -> ProxyCredential:
        """Return a credential routed to ``postal_code`` or raise CredentialUnavailable."""
        ...


class RemoteCredentialResolver:
    """Ask the credential service for a proxy near a postal code.

    The service answers ``POST <base>/get-proxy`` with a JSON object that
    nests the credential under ``proxy`` (or ``data``).
    """

    name = "remote"

    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CREDENTIAL_TIMEOUT

    async def resolve(self, postal_code: str) -> ProxyCredential:
        url = f"{self.base_url}/get-proxy"
        try:
            async with http_utils.http_client(timeout=self.timeout) as client:
                response = await client.post(url, json={"area_code": postal_code})
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            raise CredentialUnavailable(f"Credential service timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise CredentialUnavailable(
                f"Credential service returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CredentialUnavailable(f"Credential service unreachable: {e}") from e
        except ValueError as e:
            raise CredentialUnavailable("Credential service returned invalid JSON") from e

        return _parse_service_payload(payload)


def _parse_service_payload(payload: Any) -> ProxyCredential:
    if not isinstance(payload, dict):
        raise CredentialUnavailable("Credential service payload is not an object")

    for key in ("proxy", "data"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            try:
                return ProxyCredential.model_validate(nested)
            except ValidationError as e:
                raise CredentialUnavailable(
                    f"Malformed credential in service payload: {e.error_count()} errors"
                ) from e

    raise CredentialUnavailable("Credential service payload has no credential object")


class TemplateCredentialResolver:
    """Synthesize a credential from static settings.

    The username embeds the postal code following the provider's
    convention, e.g. ``acct;zip.17101``.
    """

    name = "template"

    def __init__(
        self,
        host: str,
        port: int | None,
        base_user: str,
        password: str,
        username_template: str = "{base_user};zip.{postal_code}",
    ):
        self.host = host
        self.port = port
        self.base_user = base_user
        self.password = password
        self.username_template = username_template

    async def resolve(self, postal_code: str) -> ProxyCredential:
        if not (self.host and self.port and self.base_user and self.password):
            raise CredentialUnavailable("Proxy template is not configured")

        username = build_username(
            self.username_template, base_user=self.base_user, postal_code=postal_code
        )
        if not username:
            raise CredentialUnavailable("Username template resolved to an empty string")

        try:
            return ProxyCredential(
                host=self.host, port=self.port, user=username, password=self.password
            )
        except ValidationError as e:
            raise CredentialUnavailable(f"Invalid proxy template settings: {e.error_count()} errors") from e


def build_username(template: str, **values: str | None) -> str:
    """Build a username by only including segments with actual values.

    Splits the template by placeholders and keeps the literal text before
    a placeholder only when that placeholder has a value.

    Examples:
    - '{base_user};zip.{postal_code}', base_user='acct', postal_code='17101'
      -> 'acct;zip.17101'
    - '{base_user};zip.{postal_code}', base_user='acct', postal_code=None
      -> 'acct'
    """
    parts: list[str] = []
    current = template

    for placeholder in re.findall(r"\{([^}]+)\}", template):
        before, _, after = current.partition(f"{{{placeholder}}}")
        value = values.get(placeholder)
        if value:
            parts.append(before + str(value))
        current = after

    if current:
        parts.append(current)

    return "".join(parts).strip("-_;.")


def default_resolvers() -> list[CredentialResolver]:
    """Resolvers enabled by the current settings, in priority order."""
    resolvers: list[CredentialResolver] = []
    if settings.PROXY_SERVICE_URL:
        resolvers.append(RemoteCredentialResolver(settings.PROXY_SERVICE_URL))
    if settings.proxy_template_configured:
        resolvers.append(
            TemplateCredentialResolver(
                host=settings.PROXY_HOST,
                port=settings.PROXY_PORT,
                base_user=settings.PROXY_BASE_USER,
                password=settings.PROXY_PASS,
                username_template=settings.PROXY_USERNAME_TEMPLATE,
            )
        )
    if not resolvers:
        logger.warning("No proxy credential source configured")
    return resolvers


async def resolve_credential(
    resolvers: list[CredentialResolver], postal_code: str
) -> ProxyCredential | None:
    """Try each resolver in order and return the first credential.

    Returns:
        ProxyCredential, or None when every resolver failed. Failures are
        logged, never raised.
    """
    for resolver in resolvers:
        try:
            credential = await resolver.resolve(postal_code)
        except CredentialUnavailable as e:
            logger.warning(
                "Credential resolver failed",
                resolver=resolver.name,
                postal_code=postal_code,
                error=str(e),
            )
            continue
        except Exception as e:
            logger.warning(
                "Unexpected error while resolving credential",
                resolver=resolver.name,
                postal_code=postal_code,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        logger.info(
            "Resolved proxy credential",
            resolver=resolver.name,
            postal_code=postal_code,
            proxy=mask_credential(credential),
        )
        return credential

    logger.warning("No credential available for candidate", postal_code=postal_code)
    return None
