"""
p2pcheck/api.py

HTTP server exposing the diagnostics.

Endpoints:
- GET /identify?addr=<multiaddr>   peer reachability and identify
- GET /find?cid=<cid>              content provider lookup
- GET /health                      liveness of the service itself
- GET /metrics                     Prometheus metrics

Classified probe failures are part of a 200 response body. A missing
parameter or a session that could not be created is a 500 with the
error text as body.
"""

import json
import logging
import time
import trio
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

from .checker import Checker
from .errors import MissingArgument, RequestFault
from .metrics import VERSION

logger = logging.getLogger("p2pcheck.api")

MAX_HEADER_SIZE = 16 * 1024  # bytes


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes = b""

    def param(self, name: str) -> str:
        """
        First non-empty value of a query parameter.

        Raises:
            MissingArgument: if the parameter is absent or empty
        """
        values = self.query.get(name, [])
        if not values or not values[0]:
            raise MissingArgument(name)
        return values[0]


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        """Create text response."""
        return cls(
            status=status,
            headers={"Content-Type": content_type},
            body=text.encode("utf-8"),
        )

    @classmethod
    def error(cls, message: str, status: int = 500) -> "Response":
        """Create plain-text error response."""
        return cls.text(message, status=status)


STATUS_TEXT = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


class CheckAPI:
    """
    HTTP front end for a Checker.

    Every request runs in its own trio task with its own ephemeral session;
    the listening socket is the only thing requests share.

    Usage:
        checker = Checker(CheckConfig.from_env())
        api = CheckAPI(checker, host="0.0.0.0", port=3333)
        await api.start()
    """

    def __init__(
        self,
        checker: Checker,
        host: str = "0.0.0.0",
        port: int = 3333,
    ):
        """
        Initialize HTTP server.

        Args:
            checker: Checker that runs the probes
            host: Host to bind to
            port: Port to listen on
        """
        self.checker = checker
        self.host = host
        self.port = port

        self._running = False
        self._start_time = time.time()

        # Route handlers
        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/identify"): self._handle_identify,
            ("GET", "/find"): self._handle_find,
            ("GET", "/metrics"): self._handle_metrics,
        }

    async def start(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """Start the HTTP server and serve until cancelled."""
        if self._running:
            logger.warning("HTTP server already running")
            return

        self._running = True
        try:
            listeners = await trio.open_tcp_listeners(self.port, host=self.host)
            for listener in listeners:
                logger.info(f"listening on {listener.socket.getsockname()}")
            logger.info("Ready to start serving")
            task_status.started(listeners)
            await trio.serve_listeners(self._handle_connection, listeners)
        except Exception as e:
            logger.error(f"HTTP server error: {e}")
            raise
        finally:
            self._running = False

    async def _handle_connection(self, stream: trio.SocketStream) -> None:
        """Handle incoming TCP connection."""
        try:
            request = await self._read_request(stream)
            if not request:
                return

            response = await self.handle(request)
            await self._send_response(stream, response)

        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(stream, Response.error(str(e)))
            except Exception as send_error:
                logger.debug(f"Could not return error over HTTP: {send_error}")
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.SocketStream) -> Optional[Request]:
        """Read and parse HTTP request head. Bodies are never needed."""
        data = b""
        while b"\r\n\r\n" not in data:
            chunk = await stream.receive_some(4096)
            if not chunk:
                return None
            data += chunk
            if len(data) > MAX_HEADER_SIZE:
                raise ValueError("request header too large")

        header_end = data.index(b"\r\n\r\n")
        lines = data[:header_end].decode("utf-8", errors="replace").split("\r\n")

        request_line = lines[0].split(" ")
        if len(request_line) < 2:
            raise ValueError(f"malformed request line: {lines[0][:80]!r}")
        method = request_line[0]
        parsed = urlparse(request_line[1])

        headers = {}
        for line in lines[1:]:
            if ":" in line:
                key, value = line.split(":", 1)
                headers[key.strip().lower()] = value.strip()

        return Request(
            method=method,
            path=parsed.path,
            query=parse_qs(parsed.query),
            headers=headers,
        )

    async def _send_response(self, stream: trio.SocketStream, response: Response) -> None:
        """Send HTTP response."""
        status_text = STATUS_TEXT.get(response.status, "Unknown")

        lines = [f"HTTP/1.1 {response.status} {status_text}"]

        response.headers["Content-Length"] = str(len(response.body))
        response.headers["Connection"] = "close"
        response.headers["Server"] = f"p2pcheck/{VERSION}"
        response.headers["Access-Control-Allow-Origin"] = "*"

        for key, value in response.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        await stream.send_all(header_bytes + response.body)

    async def handle(self, request: Request) -> Response:
        """Route a request and turn request faults into 500 responses."""
        handler = self._routes.get((request.method, request.path))
        if handler is None:
            if any(path == request.path for (_, path) in self._routes):
                return Response.error("Method Not Allowed", status=405)
            return Response.error("Not Found", status=404)

        try:
            return await handler(request)
        except RequestFault as e:
            logger.error(f"{request.method} {request.path}: {e}")
            return Response.error(str(e), status=500)

    # ========== Route Handlers ==========

    async def _handle_root(self, request: Request) -> Response:
        return Response.json({
            "name": "p2pcheck",
            "version": VERSION,
            "endpoints": list(f"{m} {p}" for (m, p) in self._routes.keys()),
            "config": self.checker.config.to_dict(),
        })

    async def _handle_health(self, request: Request) -> Response:
        return Response.json({
            "status": "healthy",
            "uptime_seconds": time.time() - self._start_time,
            "active_sessions": self.checker.sessions.active,
            "stats": self.checker.metrics.get_stats(),
        })

    async def _handle_identify(self, request: Request) -> Response:
        address = request.param("addr")
        result = await self.checker.run_identify(address)
        return Response.json(result.to_dict())

    async def _handle_find(self, request: Request) -> Response:
        cid = request.param("cid")
        result = await self.checker.run_find_content(cid)
        return Response.json(result.to_dict())

    async def _handle_metrics(self, request: Request) -> Response:
        return Response.text(
            self.checker.metrics.collect(),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )
