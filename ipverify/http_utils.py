from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger

USER_AGENT = "ipverify/0.1"


def http_client(**kwargs: Any) -> httpx.AsyncClient:
    """Create the AsyncClient used for every outbound call.

    Callers own the client and must close it (``async with``).
    """
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    return httpx.AsyncClient(headers=headers, **kwargs)


def client_ip_from_headers(headers: Mapping[str, str], fallback: str = "") -> str:
    """
    Get the caller's address from the incoming headers.
    If the server is behind a proxy (e.g., load balancer), the first x-forwarded-for hop is the caller.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded = lowered.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = lowered.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if not fallback:
        logger.debug("No client address found in headers or socket peer")
    return fallback
