"""
p2pcheck/network.py

Network capability provider: one fresh libp2p node per diagnostic session.

NetworkNode is the interface the probes and the session manager consume.
Libp2pNode implements it on py-libp2p with a brand-new key pair, its own
peerstore and, for lookup sessions, its own Kademlia DHT client. Nothing
in a node is shared with any other node.

Deadlines are not handled here: callers bound every coroutine with their
own trio cancel scopes.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, List, Optional

import trio

from .addressing import ContentTarget, PeerTarget, resolve_multiaddr_dns
from .config import EPHEMERAL_LISTEN_ADDR, PEERSTORE_ADDR_TTL
from .errors import SessionError

logger = logging.getLogger("p2pcheck.network")

# Bound on a single bootstrap dial
BOOTSTRAP_DIAL_TIMEOUT = 10.0  # seconds


@dataclass
class PeerConnection:
    """Handle on an established connection to a remote peer."""
    peer_id: str
    raw: Any = None  # transport-level connection object


class NetworkNode(ABC):
    """
    Interface of a network identity able to probe remote peers.

    Implementations may raise any exception from the network operations;
    the probes turn it into a classified result field.
    """

    @property
    @abstractmethod
    def peer_id(self) -> str:
        """This node's own peer ID."""

    @abstractmethod
    async def start(self) -> None:
        """Create the identity and bind transports."""

    @abstractmethod
    async def stop(self) -> None:
        """Release everything start() acquired. Must be safe to call twice."""

    @abstractmethod
    async def bootstrap(self, peers: List[str], timeout: float) -> int:
        """Seed the lookup capability; returns how many peers were reached."""

    @abstractmethod
    async def connect(self, target: PeerTarget) -> PeerConnection:
        """Record the target's addresses and open a connection to it."""

    @abstractmethod
    async def ping(self, peer_id: str) -> int:
        """One liveness round trip; returns the RTT in milliseconds."""

    @abstractmethod
    async def identify(self, connection: PeerConnection) -> None:
        """Run the identify exchange over an established connection."""

    @abstractmethod
    async def find_providers(self, content: ContentTarget) -> List[str]:
        """Look up peers advertising the content."""

    @abstractmethod
    def protocols_of(self, peer_id: str) -> List[str]:
        """Protocols recorded locally for a peer."""

    @abstractmethod
    def addresses_of(self, peer_id: str) -> List[str]:
        """Addresses recorded locally for a peer."""

    @abstractmethod
    def known_peers(self) -> List[str]:
        """Peer IDs in the local address book."""


class Libp2pNode(NetworkNode):
    """
    Ephemeral py-libp2p host.

    Usage:
        node = Libp2pNode(lookup=True)
        await node.start()
        try:
            await node.bootstrap(BOOTSTRAP_PEERS, timeout=30)
            providers = await node.find_providers(content)
        finally:
            await node.stop()
    """

    def __init__(
        self,
        lookup: bool = False,
        listen_addr: str = EPHEMERAL_LISTEN_ADDR,
        addr_ttl: int = PEERSTORE_ADDR_TTL,
    ):
        """
        Initialize an unstarted node.

        Args:
            lookup: Also run a Kademlia DHT client
            listen_addr: Multiaddress to listen on (default: any port)
            addr_ttl: TTL for addresses written into the peerstore
        """
        self.lookup = lookup
        self.listen_addr = listen_addr
        self.addr_ttl = addr_ttl

        self._host = None  # libp2p BasicHost
        self._dht = None   # Kademlia DHT (lookup sessions only)
        self._stack: Optional[AsyncExitStack] = None
        self._ping = None
        self._identify = None

    # ========== Lifecycle ==========

    @property
    def peer_id(self) -> str:
        if not self._host:
            return ""
        return str(self._host.get_id())

    async def start(self) -> None:
        from libp2p import new_host
        from libp2p.crypto.secp256k1 import create_new_key_pair
        from multiaddr import Multiaddr

        from .protocol import IdentifyClient, PingClient

        # Fresh key pair per node: never reuse an identity across probes
        self._host = new_host(key_pair=create_new_key_pair())
        self._ping = PingClient(self._host)
        self._identify = IdentifyClient(self._host)

        self._stack = AsyncExitStack()
        await self._stack.enter_async_context(
            self._host.run(listen_addrs=[Multiaddr(self.listen_addr)])
        )
        logger.debug(f"Ephemeral host {self.peer_id} listening on {self._host.get_addrs()}")

        if self.lookup:
            from libp2p.kad_dht.kad_dht import KadDHT, DHTMode
            from libp2p.tools.async_service.trio_service import background_trio_service

            self._dht = KadDHT(self._host, mode=DHTMode.CLIENT)
            await self._stack.enter_async_context(background_trio_service(self._dht))
            logger.debug("Kademlia DHT client started")

    async def stop(self) -> None:
        stack, self._stack = self._stack, None
        if stack is None:
            return
        await stack.aclose()
        logger.debug(f"Ephemeral host {self.peer_id} stopped")

    async def bootstrap(self, peers: List[str], timeout: float) -> int:
        """
        Connect to bootstrap peers and add them to the DHT routing table.

        Raises:
            SessionError: if this node has no DHT, or no bootstrap peer answered
        """
        from libp2p.peer.peerinfo import info_from_p2p_addr
        from multiaddr import Multiaddr

        if self._dht is None:
            raise SessionError("node was started without a DHT")
        if not peers:
            raise SessionError("no bootstrap peers configured")

        logger.info(f"Connecting to {len(peers)} bootstrap peer(s)...")
        connected = 0

        with trio.move_on_after(timeout):
            for addr in peers:
                try:
                    resolved = await resolve_multiaddr_dns(addr)
                    peer_info = info_from_p2p_addr(Multiaddr(resolved))

                    with trio.move_on_after(BOOTSTRAP_DIAL_TIMEOUT) as cancel_scope:
                        await self._host.connect(peer_info)
                        await self._dht.routing_table.add_peer(peer_info)

                    if cancel_scope.cancelled_caught:
                        logger.warning(f"TIMEOUT connecting to bootstrap {peer_info.peer_id}")
                        continue

                    connected += 1
                    logger.debug(f"Connected to bootstrap: {peer_info.peer_id}")

                except Exception as e:
                    logger.warning(f"FAILED to connect to bootstrap {addr[:50]}...: {type(e).__name__}: {e}")

        logger.info(f"Bootstrap done: {connected}/{len(peers)} peer(s), {len(self.known_peers())} known")

        if connected == 0:
            raise SessionError("could not connect to any bootstrap peer")
        return connected

    # ========== Probing ==========

    async def connect(self, target: PeerTarget) -> PeerConnection:
        from libp2p.peer.id import ID as PeerID
        from libp2p.peer.peerinfo import PeerInfo
        from multiaddr import Multiaddr

        peer_id = PeerID.from_base58(target.peer_id)
        addrs = [Multiaddr(await resolve_multiaddr_dns(addr)) for addr in target.addresses]

        # The peerstore must know the addresses before the swarm can dial
        self._host.get_peerstore().add_addrs(peer_id, addrs, self.addr_ttl)
        await self._host.connect(PeerInfo(peer_id, addrs))

        conn = await self._host.get_network().dial_peer(peer_id)
        logger.debug(f"Connected to {target.peer_id}")
        return PeerConnection(peer_id=target.peer_id, raw=conn)

    async def ping(self, peer_id: str) -> int:
        from libp2p.peer.id import ID as PeerID

        return await self._ping.ping(PeerID.from_base58(peer_id))

    async def identify(self, connection: PeerConnection) -> None:
        from libp2p.peer.id import ID as PeerID

        await self._identify.identify(PeerID.from_base58(connection.peer_id))

    async def find_providers(self, content: ContentTarget) -> List[str]:
        if self._dht is None:
            raise SessionError("node was started without a DHT")

        providers = await self._dht.find_providers(content.cid)
        return [str(info.peer_id) for info in providers]

    def protocols_of(self, peer_id: str) -> List[str]:
        from libp2p.peer.id import ID as PeerID

        protocols = self._host.get_peerstore().get_protocols(PeerID.from_base58(peer_id))
        # First-seen order, each protocol once
        return list(dict.fromkeys(str(p) for p in protocols))

    def addresses_of(self, peer_id: str) -> List[str]:
        from libp2p.peer.id import ID as PeerID
        from libp2p.peer.peerstore import PeerStoreError

        try:
            addrs = self._host.get_peerstore().addrs(PeerID.from_base58(peer_id))
        except PeerStoreError:
            return []
        return [str(addr) for addr in addrs]

    def known_peers(self) -> List[str]:
        if not self._host:
            return []
        return [str(pid) for pid in self._host.get_peerstore().peer_ids()]
