"""
p2pcheck/probes.py

The two diagnostic probes.

ConnectivityProbe: parse -> connect -> ping -> identify -> read back
ProviderLookupProbe: parse -> DHT provider lookup

Each probe runs its stages strictly in order inside one ephemeral session
and under one Deadline. The first failing stage writes its classified
error into the result and the probe returns; the session is released on
every path. Only a session that cannot be built escapes as an exception
(SessionError), since without a node there is nothing to diagnose.

Usage:
    sessions = SessionManager()
    probe = ConnectivityProbe(sessions, timeout=15)
    result = await probe.run("/ip4/1.2.3.4/tcp/4001/p2p/12D3KooW...")
    print(result.to_dict())
"""

import logging
from typing import Awaitable, Callable, TypeVar

import trio

from .addressing import PeerTarget, filter_public_addresses, parse_cid, parse_peer_address
from .config import DEFAULT_PROBE_TIMEOUT
from .errors import AddressParseError, CIDParseError, DeadlineExceeded
from .results import (
    CONNECT_TIMEOUT,
    FIND_PROVIDERS_TIMEOUT,
    IDENTIFY_TIMEOUT,
    NO_PROVIDERS,
    NO_PUBLIC_ADDRESSES,
    PING_TIMEOUT,
    IdentifyResult,
    ProviderLookupResult,
)
from .session import EphemeralSession, SessionFeatures, SessionManager

logger = logging.getLogger("p2pcheck.probes")

T = TypeVar("T")


def describe(exc: BaseException) -> str:
    """Human-readable text for a classified failure."""
    text = str(exc)
    return text if text else type(exc).__name__


class Deadline:
    """
    A single time budget shared by every stage of one probe.

    The budget is fixed when the Deadline is created and never renewed.
    Once it has passed, run() refuses to start any further operation.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        self.at = trio.current_time() + timeout

    @property
    def expired(self) -> bool:
        return trio.current_time() >= self.at

    def remaining(self) -> float:
        return max(0.0, self.at - trio.current_time())

    async def run(self, fn: Callable[..., Awaitable[T]], *args) -> T:
        """
        Await fn(*args), abandoning it when the deadline passes.

        Raises:
            DeadlineExceeded: if the deadline passed before or during the call
        """
        if self.expired:
            raise DeadlineExceeded()

        with trio.move_on_at(self.at):
            return await fn(*args)

        raise DeadlineExceeded()


class ConnectivityProbe:
    """
    Is this peer reachable, and what does it claim to support?

    Liveness checking is optional; with it off the probe goes straight
    from connect to identify.
    """

    def __init__(
        self,
        sessions: SessionManager,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        check_liveness: bool = True,
        filter_private_addrs: bool = False,
    ):
        """
        Initialize the probe.

        Args:
            sessions: Source of ephemeral sessions
            timeout: Budget for all network stages of one run
            check_liveness: Ping the peer before identifying it
            filter_private_addrs: Never dial private or loopback addresses
        """
        self.sessions = sessions
        self.timeout = timeout
        self.check_liveness = check_liveness
        self.filter_private_addrs = filter_private_addrs

    async def run(self, address: str) -> IdentifyResult:
        result = IdentifyResult()

        try:
            target = parse_peer_address(address)
        except AddressParseError as e:
            result.parse_address_error = describe(e)
            return result

        # A bare /p2p/<id> has nothing to filter and is dialled from the peerstore
        if self.filter_private_addrs and target.addresses:
            target = PeerTarget(target.peer_id, filter_public_addresses(target.addresses))
            if not target.addresses:
                result.connect_to_peer_error = NO_PUBLIC_ADDRESSES
                return result

        features = SessionFeatures(liveness=self.check_liveness, lookup=False)
        async with self.sessions.session(features) as session:
            deadline = Deadline(self.timeout)
            await self._interrogate(session, target, deadline, result)

        logger.info(f"Identify {target.peer_id}: {result.outcome}")
        return result

    async def _interrogate(
        self,
        session: EphemeralSession,
        target: PeerTarget,
        deadline: Deadline,
        result: IdentifyResult,
    ) -> None:
        # Connect
        try:
            await deadline.run(session.connect, target)
        except DeadlineExceeded:
            result.connect_to_peer_error = CONNECT_TIMEOUT
            return
        except Exception as e:
            result.connect_to_peer_error = describe(e)
            return

        # Liveness
        if self.check_liveness:
            try:
                rtt = await deadline.run(session.ping)
            except DeadlineExceeded:
                result.ping_error = PING_TIMEOUT
                return
            except Exception as e:
                result.ping_error = describe(e)
                return
            result.ping_duration_ms = int(rtt)

        # Identify, raced against whatever is left of the deadline
        try:
            await deadline.run(session.identify)
        except DeadlineExceeded:
            result.identify_peer_error = IDENTIFY_TIMEOUT
            return
        except Exception as e:
            result.identify_peer_error = describe(e)
            return

        # Read back what identify recorded
        try:
            result.protocols = session.protocols_of(target.peer_id)
        except Exception as e:
            result.identify_peer_error = describe(e)
            return
        result.addresses = session.addresses_of(target.peer_id)

        # TODO: report the address the peer observed for us once the
        # identify exchange exposes it through the node interface.


class ProviderLookupProbe:
    """Who, if anyone, is currently advertising this content?"""

    def __init__(self, sessions: SessionManager, timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.sessions = sessions
        self.timeout = timeout

    async def run(self, cid: str) -> ProviderLookupResult:
        result = ProviderLookupResult()

        try:
            content = parse_cid(cid)
        except CIDParseError as e:
            result.parse_cid_error = describe(e)
            return result

        async with self.sessions.session(SessionFeatures(liveness=False, lookup=True)) as session:
            deadline = Deadline(self.timeout)
            try:
                providers = await deadline.run(session.find_providers, content)
            except DeadlineExceeded:
                result.find_providers_error = FIND_PROVIDERS_TIMEOUT
                return result
            except Exception as e:
                result.find_providers_error = describe(e)
                return result

        if not providers:
            result.providers_error = NO_PROVIDERS
        result.providers = [str(p) for p in providers]

        logger.info(f"Find providers {content.cid}: {len(result.providers)} provider(s)")
        return result
