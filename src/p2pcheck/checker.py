"""
p2pcheck/checker.py

Entry points the request façade calls.

Checker wires a SessionManager and the two probes together from a
CheckConfig and records every run in the metrics collector.
"""

import logging
import time
from typing import Optional

from .config import CheckConfig
from .errors import SessionError
from .metrics import MetricsCollector
from .probes import ConnectivityProbe, ProviderLookupProbe
from .results import IdentifyResult, ProviderLookupResult
from .session import NodeFactory, SessionManager

logger = logging.getLogger("p2pcheck.checker")


class Checker:
    """
    Runs diagnostics on behalf of callers.

    Usage:
        checker = Checker(CheckConfig.from_env())
        result = await checker.run_identify("/ip4/1.2.3.4/tcp/4001/p2p/12D3KooW...")
        result = await checker.run_find_content("bafybei...")
    """

    def __init__(
        self,
        config: Optional[CheckConfig] = None,
        node_factory: Optional[NodeFactory] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or CheckConfig()
        self.sessions = SessionManager(
            node_factory=node_factory,
            bootstrap_peers=self.config.bootstrap_peers,
            bootstrap_timeout=self.config.bootstrap_timeout,
        )
        self.metrics = metrics or MetricsCollector(self.sessions)

        self.identify_probe = ConnectivityProbe(
            self.sessions,
            timeout=self.config.probe_timeout,
            check_liveness=self.config.check_liveness,
            filter_private_addrs=self.config.filter_private_addrs,
        )
        self.lookup_probe = ProviderLookupProbe(
            self.sessions,
            timeout=self.config.probe_timeout,
        )

    async def run_identify(self, address: str) -> IdentifyResult:
        """
        Check reachability of a peer and what it supports.

        Raises:
            SessionError: if no ephemeral host could be created
        """
        started = time.time()
        try:
            result = await self.identify_probe.run(address)
        except SessionError:
            self.metrics.record_probe("identify", "session_error", time.time() - started)
            raise

        self.metrics.record_probe("identify", result.outcome, time.time() - started)
        if result.ping_duration_ms is not None:
            self.metrics.record_ping_latency(result.ping_duration_ms / 1000)
        return result

    async def run_find_content(self, cid: str) -> ProviderLookupResult:
        """
        Look up providers of a CID in the DHT.

        Raises:
            SessionError: if no ephemeral host could be created or bootstrapped
        """
        started = time.time()
        try:
            result = await self.lookup_probe.run(cid)
        except SessionError:
            self.metrics.record_probe("find", "session_error", time.time() - started)
            raise

        self.metrics.record_probe("find", result.outcome, time.time() - started)
        return result
