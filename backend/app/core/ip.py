"""
Client IP resolution for audit entries and rate-limit keys.

Forwarding headers are only read when the direct peer is a configured
trusted proxy. ``X-Forwarded-For`` is walked from the right so that a
client cannot pick its own address by prepending entries.
"""

from __future__ import annotations

from ipaddress import IPv4Address, IPv6Address, ip_address, ip_network
from typing import Sequence

from fastapi import Request

from app.core.config import settings

IPAddress = IPv4Address | IPv6Address


def _parse(value: str | None) -> IPAddress | None:
    if not value:
        return None
    try:
        return ip_address(value.strip())
    except ValueError:
        return None


def _trusted_networks(entries: Sequence[str]):
    networks = []
    for entry in entries:
        try:
            networks.append(ip_network(entry.strip(), strict=False))
        except ValueError:
            continue
    return networks


def _is_trusted(address: IPAddress, networks) -> bool:
    return any(address in network for network in networks)


def _from_forwarded_chain(raw: str, networks) -> IPAddress | None:
    hops = [_parse(part) for part in raw.split(",")]
    hops = [hop for hop in hops if hop is not None]
    for hop in reversed(hops):
        if not _is_trusted(hop, networks):
            return hop
    # Every hop was one of our proxies.
    return hops[0] if hops else None


def extract_client_ip(request: Request) -> str | None:
    peer_raw = request.client.host if request.client else None
    peer = _parse(peer_raw)
    if peer is None:
        # Test clients report a host name ("testclient") rather than an address.
        return peer_raw

    if not settings.TRUST_PROXY_HEADERS:
        return str(peer)
    networks = _trusted_networks(settings.TRUSTED_PROXY_IPS)
    if not _is_trusted(peer, networks):
        return str(peer)

    for header in settings.TRUSTED_IP_HEADERS:
        raw = request.headers.get(header)
        if not raw:
            continue
        resolved = _from_forwarded_chain(raw, networks)
        if resolved is not None:
            return str(resolved)
    return str(peer)
