"""
p2pcheck/session.py

Ephemeral session management.

Every diagnostic request gets its own network node: a fresh identity, its
own address book and, when it needs one, its own DHT routing table. The
manager builds the node, bootstraps it when lookups are requested, and
tears it down exactly once when the probe is finished, whatever happened.

Usage:
    sessions = SessionManager(bootstrap_peers=BOOTSTRAP_PEERS)

    async with sessions.session(SessionFeatures(lookup=True)) as session:
        providers = await session.find_providers(content)
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

import trio

from .addressing import ContentTarget, PeerTarget
from .config import BOOTSTRAP_PEERS, BOOTSTRAP_TIMEOUT, TEARDOWN_TIMEOUT
from .errors import SessionError
from .network import Libp2pNode, NetworkNode, PeerConnection

logger = logging.getLogger("p2pcheck.session")


@dataclass(frozen=True)
class SessionFeatures:
    """Optional capabilities a session is built with."""
    liveness: bool = True
    lookup: bool = False


NodeFactory = Callable[[SessionFeatures], NetworkNode]


def default_node_factory(features: SessionFeatures) -> NetworkNode:
    """Build a py-libp2p node, with a DHT client only when lookups are needed."""
    return Libp2pNode(lookup=features.lookup)


class EphemeralSession:
    """
    One probe's private view of the network.

    Wraps a started node and remembers the connection handle established
    by connect(), which identify() runs over.
    """

    def __init__(self, node: NetworkNode, features: SessionFeatures):
        self.session_id = uuid.uuid4().hex[:12]
        self.node = node
        self.features = features
        self.connection: Optional[PeerConnection] = None
        self.lookup_ready = False
        self.released = False

    @property
    def peer_id(self) -> str:
        return self.node.peer_id

    async def connect(self, target: PeerTarget) -> PeerConnection:
        self.connection = await self.node.connect(target)
        return self.connection

    async def ping(self) -> int:
        if not self.features.liveness:
            raise RuntimeError("session was created without liveness checks")
        if self.connection is None:
            raise RuntimeError("ping requires an established connection")
        return await self.node.ping(self.connection.peer_id)

    async def identify(self) -> None:
        if self.connection is None:
            raise RuntimeError("identify requires an established connection")
        await self.node.identify(self.connection)

    async def find_providers(self, content: ContentTarget) -> List[str]:
        if not self.lookup_ready:
            raise RuntimeError("session has no bootstrapped lookup capability")
        return await self.node.find_providers(content)

    def protocols_of(self, peer_id: str) -> List[str]:
        return self.node.protocols_of(peer_id)

    def addresses_of(self, peer_id: str) -> List[str]:
        return self.node.addresses_of(peer_id)

    def __repr__(self) -> str:
        return (
            f"EphemeralSession(id={self.session_id}, peer_id={self.peer_id}, "
            f"lookup={self.lookup_ready}, released={self.released})"
        )


class SessionManager:
    """
    Creates and destroys ephemeral sessions.

    There is no pool: each acquire builds a new node and each release
    destroys it. The counters exist for metrics and for checking that
    every acquired session was released.
    """

    def __init__(
        self,
        node_factory: Optional[NodeFactory] = None,
        bootstrap_peers: Optional[List[str]] = None,
        bootstrap_timeout: float = BOOTSTRAP_TIMEOUT,
        teardown_timeout: float = TEARDOWN_TIMEOUT,
    ):
        """
        Initialize the session manager.

        Args:
            node_factory: Builds an unstarted node for the requested features
            bootstrap_peers: Multiaddresses used to seed lookup sessions
            bootstrap_timeout: Bound on bootstrapping one session
            teardown_timeout: Bound on stopping one node
        """
        self.node_factory = node_factory or default_node_factory
        # Use explicit None check - empty list means "no bootstrap peers"
        self.bootstrap_peers = BOOTSTRAP_PEERS if bootstrap_peers is None else bootstrap_peers
        self.bootstrap_timeout = bootstrap_timeout
        self.teardown_timeout = teardown_timeout

        self.acquired = 0
        self.released = 0
        self.failed = 0

    @property
    def active(self) -> int:
        """Sessions acquired but not yet released."""
        return self.acquired - self.released

    async def acquire(self, features: SessionFeatures = SessionFeatures()) -> EphemeralSession:
        """
        Build, start and (for lookup sessions) bootstrap a new node.

        Raises:
            SessionError: if the node cannot be created, started or bootstrapped
        """
        try:
            node = self.node_factory(features)
        except Exception as e:
            self.failed += 1
            raise SessionError(f"could not create ephemeral host: {e}") from e

        session = EphemeralSession(node, features)
        ready = False
        stage = "create ephemeral host"
        try:
            await node.start()

            if features.lookup:
                stage = "bootstrap the DHT"
                await node.bootstrap(self.bootstrap_peers, self.bootstrap_timeout)
                session.lookup_ready = True

            ready = True

        except SessionError as e:
            self.failed += 1
            logger.error(f"Session {session.session_id}: could not {stage}: {e}")
            raise
        except Exception as e:
            self.failed += 1
            logger.error(f"Session {session.session_id}: could not {stage}: {e}")
            raise SessionError(f"could not {stage}: {e}") from e
        finally:
            if not ready:
                await self._teardown(node)

        self.acquired += 1
        logger.debug(f"Acquired session {session.session_id} (peer {session.peer_id}, active={self.active})")
        return session

    async def release(self, session: EphemeralSession) -> None:
        """Tear a session down. Never raises; releasing twice is a no-op."""
        if session.released:
            logger.warning(f"Session {session.session_id} released twice")
            return

        session.released = True
        session.connection = None
        session.lookup_ready = False
        self.released += 1

        await self._teardown(session.node)
        logger.debug(f"Released session {session.session_id} (active={self.active})")

    @asynccontextmanager
    async def session(self, features: SessionFeatures = SessionFeatures()) -> AsyncIterator[EphemeralSession]:
        """Acquire a session for the duration of a `async with` block."""
        session = await self.acquire(features)
        try:
            yield session
        finally:
            await self.release(session)

    async def _teardown(self, node: NetworkNode) -> None:
        # Shielded so teardown still runs when the probe is being cancelled
        with trio.CancelScope(shield=True):
            with trio.move_on_after(self.teardown_timeout) as cancel_scope:
                try:
                    await node.stop()
                except Exception as e:
                    logger.debug(f"Error stopping ephemeral host (non-critical): {e}")

            if cancel_scope.cancelled_caught:
                logger.debug(f"Stopping ephemeral host timed out after {self.teardown_timeout}s")
