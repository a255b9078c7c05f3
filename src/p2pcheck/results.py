"""
p2pcheck/results.py

Result records returned by the probes.

Each result starts empty and is filled stage by stage. A field left as
None is omitted from the JSON payload, so a caller only ever sees the
fields of the stages that actually ran.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

# Classified messages produced by the probes themselves
CONNECT_TIMEOUT = "timeout when trying to connect to the peer"
PING_TIMEOUT = "timeout when trying to ping the peer"
IDENTIFY_TIMEOUT = "timeout when trying to identify the peer"
FIND_PROVIDERS_TIMEOUT = "timeout when trying to find providers"
NO_PROVIDERS = "no providers found"
NO_PUBLIC_ADDRESSES = "no public addresses to dial"


def _compact(record: Any) -> Dict[str, Any]:
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        out[f.name] = list(value) if isinstance(value, list) else value
    return out


@dataclass
class IdentifyResult:
    """Outcome of a connectivity probe."""
    parse_address_error: Optional[str] = None
    connect_to_peer_error: Optional[str] = None
    identify_peer_error: Optional[str] = None
    ping_error: Optional[str] = None
    ping_duration_ms: Optional[int] = None
    protocols: Optional[List[str]] = None
    addresses: Optional[List[str]] = None

    @property
    def outcome(self) -> str:
        """Short label of the stage that decided this result."""
        if self.parse_address_error is not None:
            return "parse_error"
        if self.connect_to_peer_error is not None:
            return "connect_error"
        if self.ping_error is not None:
            return "ping_error"
        if self.identify_peer_error is not None:
            return "identify_error"
        return "ok"

    def to_dict(self) -> Dict[str, Any]:
        return _compact(self)


@dataclass
class ProviderLookupResult:
    """Outcome of a content-provider lookup."""
    parse_cid_error: Optional[str] = None
    find_providers_error: Optional[str] = None
    providers: Optional[List[str]] = None
    providers_error: Optional[str] = None

    @property
    def outcome(self) -> str:
        """Short label of the stage that decided this result."""
        if self.parse_cid_error is not None:
            return "parse_error"
        if self.find_providers_error is not None:
            return "lookup_error"
        if self.providers_error is not None:
            return "no_providers"
        return "ok"

    def to_dict(self) -> Dict[str, Any]:
        return _compact(self)
