"""Single plain-HTTP GET forwarded through an authenticated HTTP proxy.

The request goes to the proxy host/port in absolute form (the full target
URL as the request target) with a ``Host`` header for the target and an
explicit ``Proxy-Authorization: Basic`` header. Credentials are never
embedded in the proxy URL since provider usernames carry routing
parameters (``;zip.17101``) that are not valid URL userinfo.

Only ``http://`` targets are supported: an ``https://`` target would need
a CONNECT tunnel, which this client does not open.
"""

import base64
from urllib.parse import urlsplit

import httpx
from loguru import logger

from ipverify import http_utils
from ipverify.errors import TunnelRequestFailed
from ipverify.masking import mask_credential
from ipverify.proxy.credentials import ProxyCredential
from ipverify.settings import settings

logger = logger.bind(topic="proxy_tunnel")


def basic_proxy_authorization(user: str, password: str) -> str:
    """Value of the Proxy-Authorization header.

    Example:
        >>> basic_proxy_authorization("user", "pass")
        'Basic dXNlcjpwYXNz'
    """
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def build_proxy(credential: ProxyCredential) -> httpx.Proxy:
    return httpx.Proxy(
        url=credential.server,
        headers={
            "Proxy-Authorization": basic_proxy_authorization(credential.user, credential.password)
        },
    )


def proxy_transport(credential: ProxyCredential) -> httpx.AsyncBaseTransport:
    """Transport that forwards every request to the credential's proxy."""
    return httpx.AsyncHTTPTransport(proxy=build_proxy(credential), retries=0)


async def fetch_via_tunnel(
    url: str,
    credential: ProxyCredential,
    *,
    timeout: float | None = None,
) -> str:
    """GET ``url`` through the proxy and return the body text.

    Args:
        url: Plain-HTTP target URL
        credential: Proxy to forward through
        timeout: Seconds before the attempt is aborted, defaults to TUNNEL_TIMEOUT

    Returns:
        Response body on a 2xx status

    Raises:
        TunnelRequestFailed: on an https target, timeout, connection error or non-2xx status.
            No retry is made here.
    """
    target = urlsplit(url)
    if target.scheme != "http" or not target.netloc:
        raise TunnelRequestFailed(f"Only plain-HTTP targets can be tunneled: {url}")

    timeout = timeout if timeout is not None else settings.TUNNEL_TIMEOUT
    proxy = mask_credential(credential)

    try:
        async with http_utils.http_client(
            transport=proxy_transport(credential),
            timeout=timeout,
            follow_redirects=False,
            trust_env=False,
        ) as client:
            response = await client.get(url, headers={"Host": target.netloc})
    except httpx.TimeoutException as e:
        logger.warning("Tunnel request timed out", url=url, proxy=proxy, timeout=timeout)
        raise TunnelRequestFailed(f"Timed out after {timeout}s: {url}") from e
    except httpx.ProxyError as e:
        logger.warning("Proxy rejected tunnel request", url=url, proxy=proxy, error=str(e))
        raise TunnelRequestFailed(f"Proxy error: {e}") from e
    except httpx.HTTPError as e:
        logger.warning(
            "Tunnel connection error",
            url=url,
            proxy=proxy,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TunnelRequestFailed(f"Connection error: {e}") from e

    if not response.is_success:
        logger.warning(
            "Tunnel request returned non-2xx status",
            url=url,
            proxy=proxy,
            status_code=response.status_code,
        )
        raise TunnelRequestFailed(f"HTTP {response.status_code} from {url}")

    logger.debug("Tunnel request succeeded", url=url, proxy=proxy, bytes=len(response.content))
    return response.text
