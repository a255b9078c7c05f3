"""
p2pcheck/config.py

Configuration constants and data classes for p2pcheck.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging
import os

logger = logging.getLogger("p2pcheck.config")


# Default HTTP listening address
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3333

# Budget shared by every network stage of one probe
DEFAULT_PROBE_TIMEOUT = 15.0  # seconds

# Bound on connecting a lookup session to its bootstrap peers
BOOTSTRAP_TIMEOUT = 30.0  # seconds

# Bound on tearing down an ephemeral host
TEARDOWN_TIMEOUT = 5.0  # seconds

# How long addresses learned for the target stay in a session's peerstore.
# Sessions never live this long; the value only has to outlast the probe.
PEERSTORE_ADDR_TTL = 60 * 60  # 1 hour

# Bootstrap peers used to seed the DHT of lookup-capable sessions.
# Format: /{ip4,dns4,dnsaddr}/{host}/tcp/{port}/p2p/{peer_id}
BOOTSTRAP_PEERS: List[str] = [
    # IPFS default bootstrap nodes
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmNnooDu7bfjPFoTZYxMNLWUQJyrVwtbZg5gBMjTezGAJN",
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmQCU2EcMqAqQPR2i9bChDtGNJchTbq5TbXJJ16u19uLTa",
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmbLHAnMoJPWSCR5Zhtx6BHJX9KiKNN6tpvbUcqanj75Nb",
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmcZf59bWwK5XFi76CZX8cbJ4BhTzzA3gU1ZjYZcYW3dwt",
    "/ip4/104.131.131.82/tcp/4001/p2p/QmaCpDMGvV2BGHeYERUEnRQAwe3N8SzbUtfsmvsqQLuvuJ",
]

# Ephemeral hosts listen on an OS-assigned port
EPHEMERAL_LISTEN_ADDR = "/ip4/0.0.0.0/tcp/0"


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name)
    return value if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using {default}")
        return default
    if parsed <= 0:
        logger.warning(f"{name} must be positive, using {default}")
        return default
    return parsed


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Invalid {name}={value!r}, using {default}")
    return default


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.environ.get(name)
    if value is None:
        return list(default)
    # An explicitly empty variable means "no bootstrap peers"
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class CheckConfig:
    """Runtime settings for the diagnostic service."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    bootstrap_timeout: float = BOOTSTRAP_TIMEOUT
    bootstrap_peers: List[str] = field(default_factory=lambda: list(BOOTSTRAP_PEERS))
    filter_private_addrs: bool = False
    check_liveness: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, overrides: Optional[dict] = None) -> "CheckConfig":
        """
        Build configuration from P2PCHECK_* environment variables.

        Invalid values are logged and replaced with the default.

        Args:
            overrides: Values that take precedence over the environment
        """
        config = cls(
            host=_env_str("P2PCHECK_HOST", DEFAULT_HOST),
            port=_env_int("P2PCHECK_PORT", DEFAULT_PORT),
            probe_timeout=_env_float("P2PCHECK_TIMEOUT", DEFAULT_PROBE_TIMEOUT),
            bootstrap_timeout=_env_float("P2PCHECK_BOOTSTRAP_TIMEOUT", BOOTSTRAP_TIMEOUT),
            bootstrap_peers=_env_list("P2PCHECK_BOOTSTRAP", BOOTSTRAP_PEERS),
            filter_private_addrs=_env_bool("P2PCHECK_FILTER_PRIVATE", False),
            check_liveness=_env_bool("P2PCHECK_PING", True),
            log_level=_env_str("P2PCHECK_LOG_LEVEL", "INFO").upper(),
        )
        for key, value in (overrides or {}).items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)
        return config

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "probe_timeout": self.probe_timeout,
            "bootstrap_timeout": self.bootstrap_timeout,
            "bootstrap_peers": list(self.bootstrap_peers),
            "filter_private_addrs": self.filter_private_addrs,
            "check_liveness": self.check_liveness,
            "log_level": self.log_level,
        }
