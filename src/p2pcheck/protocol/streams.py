"""
p2pcheck/protocol/streams.py

Small helpers for reading from and closing libp2p streams.
"""

import logging

from libp2p.network.stream.exceptions import StreamEOF

logger = logging.getLogger("p2pcheck.protocol.streams")


async def read_until_eof(stream, limit: int) -> bytes:
    """
    Read until the remote side closes its end of the stream.

    Raises:
        ValueError: if more than `limit` bytes arrive
    """
    data = b""
    while True:
        try:
            chunk = await stream.read(limit + 1 - len(data))
        except StreamEOF:
            break
        if not chunk:
            break
        data += chunk
        if len(data) > limit:
            raise ValueError(f"message larger than {limit} bytes")
    return data


async def close_stream(stream) -> None:
    """Close a stream, ignoring errors from an already-dead peer."""
    try:
        await stream.close()
    except Exception as e:
        logger.debug(f"Error closing stream (non-critical): {e}")
