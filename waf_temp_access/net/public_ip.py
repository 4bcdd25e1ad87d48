from __future__ import annotations

import ipaddress
import os
from typing import Optional, Sequence

import httpx

from ..logging import debug, get_logger

logger = get_logger("public_ip", os.getenv("LOG_LEVEL", "INFO"))

# ranked: first that answers with a parseable address wins
DEFAULT_ENDPOINTS: tuple[str, ...] = (
    "https://api.ipify.org?format=text",
    "https://icanhazip.com/",
)


class ResolverError(Exception):
    pass


def _fetch(client: httpx.Client, url: str) -> str:
    resp = client.get(url)
    resp.raise_for_status()
    text = resp.text.strip()
    ipaddress.ip_address(text)  # ValueError on junk (captive portals, HTML error pages)
    return text


def resolve_public_ip(
    client: Optional[httpx.Client] = None,
    *,
    endpoints: Sequence[str] = DEFAULT_ENDPOINTS,
    timeout: float = 10.0,
) -> str:
    """Return this host's public IP as seen by the lookup endpoints."""
    if not endpoints:
        raise ResolverError("no IP lookup endpoints configured")
    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=timeout)
    last_error: Optional[Exception] = None
    try:
        for url in endpoints:
            try:
                return _fetch(client, url)
            except (httpx.HTTPError, ValueError) as e:
                debug(logger, "Failed to get IP, trying alternative", endpoint=url, error=str(e))
                last_error = e
    finally:
        if own_client:
            client.close()
    raise ResolverError(f"Failed to get public IP: {last_error}") from last_error
