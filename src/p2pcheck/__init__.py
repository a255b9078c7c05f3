"""
p2pcheck - On-demand diagnostics for libp2p/IPFS peers

Built on py-libp2p with:
- One ephemeral libp2p host per request (fresh identity, own peerstore)
- Ping and identify exchanges to check a peer's reachability
- Kademlia DHT lookups to find who provides a CID
- An HTTP front end and Prometheus metrics

Usage:
    from p2pcheck import Checker, CheckConfig

    checker = Checker(CheckConfig.from_env())

    result = await checker.run_identify("/ip4/1.2.3.4/tcp/4001/p2p/12D3KooW...")
    print(result.to_dict())

    result = await checker.run_find_content("bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi")
    print(result.providers)

HTTP Usage:
    from p2pcheck.api import CheckAPI

    api = CheckAPI(checker, host="0.0.0.0", port=3333)
    await api.start()

    # GET /identify?addr=<multiaddr>
    # GET /find?cid=<cid>
"""

from .checker import Checker
from .config import CheckConfig, DEFAULT_PORT, DEFAULT_PROBE_TIMEOUT, BOOTSTRAP_PEERS
from .errors import (
    CheckError,
    RequestFault,
    MissingArgument,
    SessionError,
    AddressParseError,
    CIDParseError,
    DeadlineExceeded,
    ProtocolError,
)
from .metrics import MetricsCollector
from .network import NetworkNode, Libp2pNode, PeerConnection
from .probes import ConnectivityProbe, ProviderLookupProbe, Deadline
from .results import IdentifyResult, ProviderLookupResult
from .session import SessionManager, SessionFeatures, EphemeralSession

__version__ = "1.0.0"
__all__ = [
    # Core
    "Checker",
    "ConnectivityProbe",
    "ProviderLookupProbe",
    "Deadline",
    # Sessions
    "SessionManager",
    "SessionFeatures",
    "EphemeralSession",
    # Network
    "NetworkNode",
    "Libp2pNode",
    "PeerConnection",
    # Results
    "IdentifyResult",
    "ProviderLookupResult",
    # Metrics
    "MetricsCollector",
    # Config
    "CheckConfig",
    "DEFAULT_PORT",
    "DEFAULT_PROBE_TIMEOUT",
    "BOOTSTRAP_PEERS",
    # Errors
    "CheckError",
    "RequestFault",
    "MissingArgument",
    "SessionError",
    "AddressParseError",
    "CIDParseError",
    "DeadlineExceeded",
    "ProtocolError",
]
