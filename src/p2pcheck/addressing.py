"""
p2pcheck/addressing.py

Parsing of caller-supplied peer addresses and content identifiers.

Peer addresses are multiaddresses carrying a /p2p/<peer id> component,
e.g. /ip4/1.2.3.4/tcp/4001/p2p/12D3KooW... . Content identifiers are
CIDv0 (Qm...) or multibase-encoded CIDv1 strings.
"""

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass, field
from typing import List

from .errors import AddressParseError, CIDParseError

logger = logging.getLogger("p2pcheck.addressing")

_DNS_PATTERN = r'/dns4?/([^/]+)/'


@dataclass(frozen=True)
class PeerTarget:
    """A parsed peer address: the peer identity and where to dial it."""
    peer_id: str
    addresses: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentTarget:
    """A parsed content identifier."""
    cid: str
    version: int = 1


def parse_peer_address(text: str) -> PeerTarget:
    """
    Parse a multiaddress with a trailing /p2p/<peer id>.

    Raises:
        AddressParseError: if the string is not a valid peer address
    """
    from multiaddr import Multiaddr
    from libp2p.peer.peerinfo import info_from_p2p_addr

    if not text or not text.strip():
        raise AddressParseError("empty address")

    try:
        info = info_from_p2p_addr(Multiaddr(text.strip()))
    except Exception as e:
        raise AddressParseError(str(e) or f"invalid peer address: {text}") from e

    return PeerTarget(
        peer_id=str(info.peer_id),
        # a bare /p2p/<id> yields no transport address
        addresses=[str(addr) for addr in info.addrs if addr is not None and str(addr)],
    )


def parse_cid(text: str) -> ContentTarget:
    """
    Parse a CIDv0 or CIDv1 string.

    Raises:
        CIDParseError: if the string is not a valid CID
    """
    from cid import make_cid

    if not text or not text.strip():
        raise CIDParseError("empty cid")

    try:
        parsed = make_cid(text.strip())
    except Exception as e:
        raise CIDParseError(str(e) or f"invalid cid: {text}") from e

    return ContentTarget(cid=text.strip(), version=parsed.version)


def is_public_address(addr: str) -> bool:
    """
    Check whether a multiaddress may point at a publicly routable host.

    DNS-based addresses are assumed public since they cannot be checked
    without resolving them.
    """
    parts = addr.split("/")
    if len(parts) < 3:
        return False

    proto = parts[1]
    if proto in ("dns", "dns4", "dns6", "dnsaddr"):
        return True
    if proto not in ("ip4", "ip6"):
        return False

    try:
        ip = ipaddress.ip_address(parts[2])
    except ValueError:
        return False

    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_multicast
        or ip.is_reserved
    )


def filter_public_addresses(addresses: List[str]) -> List[str]:
    """Drop addresses that point at private, loopback or otherwise unroutable hosts."""
    public = [addr for addr in addresses if is_public_address(addr)]
    dropped = len(addresses) - len(public)
    if dropped:
        logger.debug(f"Dropped {dropped} non-public address(es)")
    return public


async def resolve_multiaddr_dns(addr: str) -> str:
    """
    Resolve DNS names in multiaddress to IP addresses.

    py-libp2p's TCP transport doesn't automatically resolve DNS names,
    so they are resolved before dialing. Unresolvable names are returned
    unchanged and left for the dial to fail on.

    Args:
        addr: Multiaddress string (e.g., /dns4/node.example.com/tcp/4001/p2p/Qm...)

    Returns:
        Resolved multiaddress with IP instead of DNS name
    """
    import trio

    match = re.search(_DNS_PATTERN, addr)
    if not match:
        return addr

    hostname = match.group(1)

    try:
        infos = await trio.socket.getaddrinfo(hostname, None, family=socket.AF_INET)
    except socket.gaierror as e:
        logger.warning(f"DNS resolution failed for {hostname}: {e}")
        return addr

    if not infos:
        return addr

    ip_addr = infos[0][4][0]
    return re.sub(_DNS_PATTERN, f'/ip4/{ip_addr}/', addr, count=1)
