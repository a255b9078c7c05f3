"""
p2pcheck/protocol/identify.py

Client side of the libp2p identify protocol (/ipfs/id/1.0.0).

The initiator opens a stream, the responder writes one Identify protobuf
message and closes. Decoding (length-prefixed or bare) and the peerstore
update are py-libp2p's own; this module drives the exchange on demand so
a probe can bound it with its deadline.

The peerstore update replaces what the host may already have recorded
from its automatic identify on connect, so protocols are never listed
twice.

Note: the observed_addr field (our address as the remote side sees it) is
decoded but nothing reports it yet.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from libp2p.custom_types import TProtocol
from libp2p.identity.identify.identify import ID as IDENTIFY_PROTOCOL_ID
from libp2p.identity.identify.identify import parse_identify_response
from libp2p.identity.update import update_peerstore_from_identify

from ..errors import ProtocolError
from .streams import close_stream, read_until_eof

if TYPE_CHECKING:
    from libp2p.abc import IHost
    from libp2p.identity.identify.pb.identify_pb2 import Identify
    from libp2p.peer.id import ID as PeerID

logger = logging.getLogger("p2pcheck.protocol.identify")

MAX_IDENTIFY_SIZE = 64 * 1024  # bytes


@dataclass
class IdentifyRecord:
    """What a peer says about itself."""
    protocol_version: str = ""
    agent_version: str = ""
    listen_addrs: List[str] = field(default_factory=list)
    protocols: List[str] = field(default_factory=list)
    observed_addr: Optional[str] = None


def _multiaddr_to_str(raw: bytes) -> Optional[str]:
    from multiaddr import Multiaddr

    try:
        return str(Multiaddr(raw))
    except Exception as e:
        logger.debug(f"Skipping undecodable multiaddr in identify message: {e}")
        return None


def parse_identify(data: bytes) -> "Identify":
    """
    Parse an identify response in either framing.

    Raises:
        ProtocolError: if the payload is empty or not an Identify message
    """
    if not data:
        raise ProtocolError("peer closed the identify stream without answering")

    try:
        return parse_identify_response(data)
    except Exception as e:
        raise ProtocolError(f"invalid identify message: {e}") from e


def to_record(message: "Identify") -> IdentifyRecord:
    listen_addrs = [a for a in (_multiaddr_to_str(raw) for raw in message.listen_addrs) if a]
    observed = _multiaddr_to_str(message.observed_addr) if message.observed_addr else None

    return IdentifyRecord(
        protocol_version=message.protocol_version,
        agent_version=message.agent_version,
        listen_addrs=listen_addrs,
        protocols=list(message.protocols),
        observed_addr=observed,
    )


def decode_identify(data: bytes) -> IdentifyRecord:
    """Parse an identify response into an IdentifyRecord."""
    return to_record(parse_identify(data))


class IdentifyClient:
    """
    Identify initiator bound to one host.

    Usage:
        client = IdentifyClient(host)
        record = await client.identify(peer_id)
        protocols = host.get_peerstore().get_protocols(peer_id)
    """

    def __init__(self, host: "IHost"):
        self._host = host

    async def identify(self, peer_id: "PeerID") -> IdentifyRecord:
        """Run the identify exchange and record the result in the peerstore."""
        stream = await self._host.new_stream(peer_id, [TProtocol(IDENTIFY_PROTOCOL_ID)])
        try:
            try:
                data = await read_until_eof(stream, MAX_IDENTIFY_SIZE)
            except ValueError as e:
                raise ProtocolError(str(e)) from e
        finally:
            await close_stream(stream)

        message = parse_identify(data)
        await update_peerstore_from_identify(self._host.get_peerstore(), peer_id, message)
        record = to_record(message)

        logger.debug(
            f"Identified {peer_id}: agent={record.agent_version!r}, "
            f"{len(record.protocols)} protocol(s), {len(record.listen_addrs)} address(es)"
        )
        return record
