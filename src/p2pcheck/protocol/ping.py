"""
p2pcheck/protocol/ping.py

Client side of the libp2p ping protocol (/ipfs/ping/1.0.0).

The round trip itself is py-libp2p's PingService; this module only binds
it to a host and reduces it to the single measurement a probe needs.
"""

import logging
from typing import TYPE_CHECKING

from libp2p.host.ping import ID as PING_PROTOCOL_ID
from libp2p.host.ping import PingService

from ..errors import ProtocolError

if TYPE_CHECKING:
    from libp2p.abc import IHost
    from libp2p.peer.id import ID as PeerID

logger = logging.getLogger("p2pcheck.protocol.ping")


class PingClient:
    """
    Ping initiator bound to one host.

    Usage:
        client = PingClient(host)
        rtt_ms = await client.ping(peer_id)
        print(f"RTT: {rtt_ms} ms")
    """

    def __init__(self, host: "IHost"):
        self._service = PingService(host)

    async def ping(self, peer_id: "PeerID") -> int:
        """
        Ping a connected peer once.

        Returns:
            Round-trip time in whole milliseconds

        Raises:
            ProtocolError: if the peer answered without a measurement
        """
        rtts = await self._service.ping(peer_id, ping_amt=1)
        if not rtts:
            raise ProtocolError("ping returned no round trip")

        logger.debug(f"Ping to {peer_id}: {rtts[0]}ms")
        return rtts[0]
