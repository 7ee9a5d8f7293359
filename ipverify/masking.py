"""Privacy-safe renderings of addresses and proxy credentials for storage and logs."""

import ipaddress
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ipverify.proxy.credentials import ProxyCredential

_IPV4_MAPPED_PREFIX = "::ffff:"


def mask_ip(value: str | None) -> str:
    """Truncate an address so it identifies a network, not a host.

    IPv4 keeps the /24, IPv6 keeps the /64. IPv4-mapped IPv6 addresses
    are treated as IPv4 and zone indexes are dropped.

    Example:
        >>> mask_ip("203.0.113.7")
        '203.0.113.0/24'
        >>> mask_ip("2001:db8:1:2:3:4:5:6")
        '2001:db8:1:2::/64'
        >>> mask_ip("::ffff:198.51.100.20")
        '198.51.100.0/24'
        >>> mask_ip("not-an-ip")
        ''
    """
    if not value:
        return ""

    candidate = value.strip().split("%", 1)[0]
    if candidate.lower().startswith(_IPV4_MAPPED_PREFIX) and "." in candidate:
        candidate = candidate[len(_IPV4_MAPPED_PREFIX) :]

    try:
        address = ipaddress.ip_address(candidate)
    except ValueError:
        return ""

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped

    if address.version == 4:
        return str(ipaddress.ip_network(f"{address}/24", strict=False))
    return str(ipaddress.ip_network(f"{address}/64", strict=False))


def mask_credential(credential: "ProxyCredential") -> str:
    """Render a credential for logging with the password masked.

    Example:
        >>> mask_credential(ProxyCredential(host="gw.example.net", port=8000, user="acct;zip.17101", password="s3cret"))
        'acct;zip.17101:****@gw.example.net:8000'
    """
    return f"{credential.user}:****@{credential.host}:{credential.port}"
