"""
p2pcheck/__main__.py

Run the diagnostic HTTP service.
Run with: python -m p2pcheck   (or the `p2pcheck` console script)

Configuration comes from P2PCHECK_* environment variables, see
p2pcheck.config.CheckConfig.from_env(). Command line flags win over the
environment.
"""

import logging
import sys

import click
import trio

from .api import CheckAPI
from .checker import Checker
from .config import CheckConfig

logger = logging.getLogger("p2pcheck")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
    )
    # libp2p is very chatty below WARNING unless we are debugging
    if level != "DEBUG":
        logging.getLogger("libp2p").setLevel(logging.WARNING)


async def main(config: CheckConfig) -> None:
    """Serve diagnostics until cancelled."""
    checker = Checker(config)
    api = CheckAPI(checker, host=config.host, port=config.port)

    logger.info(
        f"Probe timeout {config.probe_timeout}s, "
        f"{len(config.bootstrap_peers)} bootstrap peer(s), "
        f"ping={'on' if config.check_liveness else 'off'}, "
        f"private address filter={'on' if config.filter_private_addrs else 'off'}"
    )
    await api.start()


@click.command()
@click.option('--host', default=None, help='Address the HTTP server binds to')
@click.option('--port', type=int, default=None, help='Port the HTTP server listens on')
@click.option('--timeout', 'probe_timeout', type=float, default=None,
              help='Seconds allowed for all network stages of one probe')
@click.option('--ping/--no-ping', 'check_liveness', default=None,
              help='Ping peers before identifying them')
@click.option('--filter-private/--no-filter-private', 'filter_private_addrs', default=None,
              help='Refuse to dial private and loopback addresses')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'],
              case_sensitive=False), default=None, help='Logging level')
def run(**overrides) -> None:
    """On-demand reachability and content-routing checks for libp2p peers."""
    if overrides.get("log_level"):
        overrides["log_level"] = overrides["log_level"].upper()
    config = CheckConfig.from_env(overrides)
    configure_logging(config.log_level)
    try:
        trio.run(main, config)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except trio.TrioInternalError as e:
        # Known issue with py-libp2p async generator cleanup
        logger.warning(f"Trio cleanup error (non-critical): {e}")
        sys.exit(0)


if __name__ == "__main__":
    run()
