"""
p2pcheck/tests/conftest.py

Shared fakes: an in-memory NetworkNode whose every operation can be made
to fail or hang, and a factory that remembers the nodes it built.
"""

from typing import Dict, List, Optional

import pytest
import trio

from p2pcheck.network import NetworkNode, PeerConnection
from p2pcheck.session import SessionFeatures

PEER_ID = "QmaCpDMGvV2BGHeYERUEnRQAwe3N8SzbUtfsmvsqQLuvuJ"
OTHER_PEER_ID = "QmNnooDu7bfjPFoTZYxMNLWUQJyrVwtbZg5gBMjTezGAJN"
PEER_ADDR = f"/ip4/104.131.131.82/tcp/4001/p2p/{PEER_ID}"
OTHER_PEER_ADDR = f"/ip4/147.75.83.83/tcp/4001/p2p/{OTHER_PEER_ID}"
PRIVATE_PEER_ADDR = f"/ip4/192.168.1.10/tcp/4001/p2p/{PEER_ID}"
CID_V0 = "QmaCpDMGvV2BGHeYERUEnRQAwe3N8SzbUtfsmvsqQLuvuJ"
CID_V1 = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"

HANG = "hang"


class FakeNode(NetworkNode):
    """
    In-memory network node.

    Each behaviour is either a value to return, an exception to raise,
    or HANG to block until cancelled.
    """

    _counter = 0

    def __init__(self, features: SessionFeatures, **behaviour):
        FakeNode._counter += 1
        self.features = features
        self._peer_id = f"12D3KooWFake{FakeNode._counter:06d}"
        self.behaviour = behaviour
        self.address_book: Dict[str, List[str]] = {}
        self.protocol_book: Dict[str, List[str]] = {}
        self.calls: List[str] = []
        self.started = 0
        self.stopped = 0

    async def _act(self, name: str, default=None):
        self.calls.append(name)
        action = self.behaviour.get(name, default)
        if action == HANG:
            await trio.sleep_forever()
        if isinstance(action, BaseException):
            raise action
        await trio.sleep(0)
        return action

    @property
    def peer_id(self) -> str:
        return self._peer_id

    async def start(self) -> None:
        self.started += 1
        await self._act("start")

    async def stop(self) -> None:
        self.stopped += 1
        await self._act("stop")

    async def bootstrap(self, peers: List[str], timeout: float) -> int:
        await self._act("bootstrap")
        return len(peers)

    async def connect(self, target) -> PeerConnection:
        self.address_book[target.peer_id] = list(target.addresses)
        await self._act("connect")
        return PeerConnection(peer_id=target.peer_id)

    async def ping(self, peer_id: str) -> int:
        return await self._act("ping", 42)

    async def identify(self, connection: PeerConnection) -> None:
        await self._act("identify")
        self.protocol_book[connection.peer_id] = list(
            self.behaviour.get("protocols", ["/ipfs/id/1.0.0", "/ipfs/ping/1.0.0"])
        )
        self.address_book.setdefault(connection.peer_id, []).extend(
            self.behaviour.get("learned_addresses", [])
        )

    async def find_providers(self, content) -> List[str]:
        return await self._act("find_providers", [])

    def protocols_of(self, peer_id: str) -> List[str]:
        error = self.behaviour.get("protocols_of")
        if isinstance(error, BaseException):
            raise error
        return list(self.protocol_book.get(peer_id, []))

    def addresses_of(self, peer_id: str) -> List[str]:
        return list(self.address_book.get(peer_id, []))

    def known_peers(self) -> List[str]:
        return list(self.address_book)


class FakeNodeFactory:
    """Node factory that records every node it builds."""

    def __init__(self, **behaviour):
        self.behaviour = behaviour
        self.nodes: List[FakeNode] = []
        self.error: Optional[Exception] = behaviour.pop("factory_error", None)

    def __call__(self, features: SessionFeatures) -> FakeNode:
        if self.error:
            raise self.error
        node = FakeNode(features, **self.behaviour)
        self.nodes.append(node)
        return node


@pytest.fixture
def make_factory():
    """Build a FakeNodeFactory with the given behaviour."""
    return FakeNodeFactory
