"""
p2pcheck/protocol/

Client sides of the libp2p wire exchanges used by the probes.
"""

from .ping import PingClient, PING_PROTOCOL_ID
from .identify import (
    IdentifyClient,
    IdentifyRecord,
    decode_identify,
    IDENTIFY_PROTOCOL_ID,
)

__all__ = [
    "PingClient",
    "PING_PROTOCOL_ID",
    "IdentifyClient",
    "IdentifyRecord",
    "decode_identify",
    "IDENTIFY_PROTOCOL_ID",
]
