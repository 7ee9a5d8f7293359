"""IP geolocation through a proxy tunnel or directly.

Two providers are used:

- an ip-api style endpoint (``{status, region, regionName, zip, query}``),
  reachable over plain HTTP and therefore through the tunnel;
- an ipwho.is style endpoint (``{success, region_code, region, postal, ip}``),
  queried directly for a known address or for the caller's own egress.

Every entry point returns a ``GeoResult``; an empty ``region_code`` means
the lookup was inconclusive. Provider and transport failures are logged
and never raised.
"""

import ipaddress

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ipverify import http_utils
from ipverify.errors import GeoLookupInconclusive, TunnelRequestFailed
from ipverify.masking import mask_credential, mask_ip
from ipverify.proxy.credentials import ProxyCredential
from ipverify.proxy.tunnel import fetch_via_tunnel
from ipverify.settings import settings

logger = logger.bind(topic="geo")


class GeoResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip: str = ""
    region_code: str = ""
    region_name: str = ""
    postal: str = ""

    @property
    def conclusive(self) -> bool:
        return bool(self.region_code)


INCONCLUSIVE = GeoResult()


class IpApiResponse(BaseModel):
    """Response of the through-tunnel provider, e.g. http://ip-api.com/json/"""

    status: str
    message: str | None = None
    region_code: str = Field(default="", alias="region")
    region_name: str = Field(default="", alias="regionName")
    zip_code: str = Field(default="", alias="zip")
    query: str = ""

    def to_geo_result(self) -> GeoResult:
        if self.status != "success":
            raise GeoLookupInconclusive(self.message or f"status={self.status}")
        if not self.region_code:
            raise GeoLookupInconclusive("no region in response")
        return GeoResult(
            ip=self.query,
            region_code=self.region_code.strip().upper(),
            region_name=self.region_name,
            postal=self.zip_code,
        )


class IpWhoResponse(BaseModel):
    """Response of the direct lookup provider, e.g. https://ipwho.is/"""

    success: bool
    message: str | None = None
    ip: str = ""
    region_code: str | None = None
    region: str | None = None
    postal: str | None = None

    def to_geo_result(self) -> GeoResult:
        if not self.success:
            raise GeoLookupInconclusive(self.message or "success=false")
        return GeoResult(
            ip=self.ip,
            region_code=(self.region_code or "").strip().upper(),
            region_name=self.region or "",
            postal=self.postal or "",
        )


def public_address(value: str | None) -> str | None:
    """Canonical form of a routable unicast address, or None.

    The zone index is dropped and an IPv4-mapped IPv6 address is unwrapped.

    Example:
        >>> public_address("::ffff:8.8.8.8")
        '8.8.8.8'
        >>> public_address("2606:4700:4700::1111%eth0")
        '2606:4700:4700::1111'
        >>> public_address("10.0.0.1") is None
        True
    """
    if not value:
        return None
    try:
        address = ipaddress.ip_address(value.strip().split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    if not address.is_global or address.is_multicast:
        return None
    return str(address)


def is_public_ip(value: str | None) -> bool:
    """True for a routable unicast address.

    Example:
        >>> is_public_ip("8.8.8.8")
        True
        >>> is_public_ip("192.168.1.10")
        False
        >>> is_public_ip("")
        False
    """
    return public_address(value) is not None


def is_ipv4_literal(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


async def geo_via_tunnel(credential: ProxyCredential) -> GeoResult:
    """Geolocate the proxy's egress by querying the provider through the tunnel."""
    proxy = mask_credential(credential)
    try:
        body = await fetch_via_tunnel(settings.GEO_TUNNEL_URL, credential)
        result = IpApiResponse.model_validate_json(body).to_geo_result()
    except TunnelRequestFailed as e:
        logger.warning("Through-tunnel geo request failed", proxy=proxy, error=str(e))
        return INCONCLUSIVE
    except ValidationError as e:
        logger.warning(
            "Through-tunnel geo response could not be parsed",
            proxy=proxy,
            errors=e.error_count(),
        )
        return INCONCLUSIVE
    except GeoLookupInconclusive as e:
        logger.warning("Through-tunnel geo lookup inconclusive", proxy=proxy, reason=str(e))
        return INCONCLUSIVE

    logger.info(
        "Through-tunnel geo resolved",
        proxy=proxy,
        ip=mask_ip(result.ip),
        region_code=result.region_code,
        postal=result.postal,
    )
    return result


async def lookup_ip(ip: str | None) -> GeoResult:
    """Geolocate ``ip`` without a proxy.

    A private, reserved or unparseable address (or none) resolves the
    caller's own egress address instead.
    """
    base_url = settings.GEO_LOOKUP_URL
    address = public_address(ip)
    if address:
        url = f"{base_url.rstrip('/')}/{address}"
    else:
        logger.debug("No routable address given, resolving own egress", ip=mask_ip(ip))
        url = base_url

    try:
        async with http_utils.http_client(timeout=settings.GEO_LOOKUP_TIMEOUT) as client:
            response = await client.get(url)
            response.raise_for_status()
            result = IpWhoResponse.model_validate(response.json()).to_geo_result()
    except httpx.HTTPError as e:
        logger.warning(
            "Direct geo lookup failed",
            ip=mask_ip(ip),
            error=str(e),
            error_type=type(e).__name__,
        )
        return INCONCLUSIVE
    except ValidationError as e:
        logger.warning("Direct geo response could not be parsed", ip=mask_ip(ip), errors=e.error_count())
        return INCONCLUSIVE
    except ValueError:
        logger.warning("Direct geo response is not JSON", ip=mask_ip(ip))
        return INCONCLUSIVE
    except GeoLookupInconclusive as e:
        logger.warning("Direct geo lookup inconclusive", ip=mask_ip(ip), reason=str(e))
        return INCONCLUSIVE

    logger.info(
        "Direct geo resolved",
        ip=mask_ip(result.ip),
        region_code=result.region_code,
        postal=result.postal,
    )
    return result


async def discover_egress_ip(credential: ProxyCredential) -> str | None:
    """Ask the IP-echo endpoints, through the tunnel, which address the proxy exits from.

    Endpoints are tried in order; the first body that is an IPv4 literal wins.
    """
    proxy = mask_credential(credential)
    for url in settings.IP_ECHO_URLS:
        try:
            body = await fetch_via_tunnel(url, credential)
        except TunnelRequestFailed as e:
            logger.warning("IP echo request failed", url=url, proxy=proxy, error=str(e))
            continue

        candidate = body.strip()
        if is_ipv4_literal(candidate):
            logger.info("Discovered proxy egress", url=url, proxy=proxy, ip=mask_ip(candidate))
            return candidate

        logger.warning(
            "IP echo returned an invalid address",
            url=url,
            proxy=proxy,
            body=mask_ip(candidate) or "<non-ip body>",
        )

    logger.warning("No IP echo endpoint yielded an address", proxy=proxy)
    return None


async def geo_via_ip_discovery(credential: ProxyCredential) -> GeoResult:
    """Discover the proxy's egress address, then geolocate it directly."""
    egress_ip = await discover_egress_ip(credential)
    if not egress_ip:
        return INCONCLUSIVE
    if not is_public_ip(egress_ip):
        # looking it up would resolve our own address instead of the proxy's
        logger.warning("Discovered egress is not routable", ip=mask_ip(egress_ip))
        return INCONCLUSIVE
    return await lookup_ip(egress_ip)
