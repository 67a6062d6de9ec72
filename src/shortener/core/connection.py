"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with buffered, framed reads.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever has arrived, not whole messages:

    Client sends:   POST / HTTP/1.1\\r\\nContent-Length: 19\\r\\n\\r\\n{"url": "http://a"}

    Server may see: "POST / HT"  "TP/1.1\\r\\nContent-Len"  "gth: 19\\r\\n\\r\\n{"u"  ...

So a request is read in two phases:

    ┌─────────────────────────────────────────────────────────────────┐
    │ 1. recv() into _buffer until \\r\\n\\r\\n appears (headers)         │
    │ 2. recv() until Content-Length body bytes follow the headers     │
    │                                                                  │
    │ Bytes past the end of this request stay in _buffer for the next │
    │ request on a keep-alive connection.                              │
    └─────────────────────────────────────────────────────────────────┘

Only framing happens here. Anything malformed (bad Content-Length,
Transfer-Encoding, a missing terminator after EOF) is handed to the
parser as-is so it can be answered with a 400.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                 │
              └─────────────────────────────────────────────────┘
    any ──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port).
        id: Short identifier for log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.

    Usage:
        with Connection(sock, addr) as conn:
            data = conn.read_request()
            conn.send_response(payload)
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request: headers plus Content-Length body bytes.

        Uses keep_alive_timeout instead of timeout after the first request.

        Returns:
            The request bytes, or None if the client closed the connection
            (or went idle on keep-alive) before sending anything.

        Raises:
            TimeoutError: If a request stalls part-way, or the first request
                never arrives.
            HTTPParseError: With status 413 if the request exceeds
                max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    # EOF: a partial request goes to the parser for a 400
                    return self._take(len(self._buffer)) if self._buffer else None
                self._append(chunk)

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._peek_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise HTTPParseError(
                    f"Request too large: {content_length} byte body",
                    status_code=413
                )

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break
                self._append(chunk)

            request_data = self._take(body_start + content_length)
            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _append(self, chunk: bytes) -> None:
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(self._buffer)} bytes",
                status_code=413
            )

    def _take(self, size: int) -> bytes:
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    @staticmethod
    def _peek_content_length(headers: bytes) -> int:
        """
        Best-effort Content-Length for framing only.

        Anything unparseable counts as 0; the parser rejects it later.
        """
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                value = value.strip()
                return int(value) if value.isdigit() else 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response with sendall().

        Returns:
            True if sent, False if the client has gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close gracefully: FIN with SHUT_WR, drain what the client still
        sends, then release the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
