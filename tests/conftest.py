"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
from typing import Generator, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shortener import ShortenerServer, ServerConfig, CodeStore
from shortener.auth import Credentials, encode_basic_auth


USERNAME = "admin"
PASSWORD = "s3cret:with-colon"


@pytest.fixture
def credentials() -> Credentials:
    """The credentials every test server is configured with."""
    return Credentials.from_string(f"{USERNAME}:{PASSWORD}")


@pytest.fixture
def auth_header() -> str:
    """A valid Authorization header value."""
    return encode_basic_auth(USERNAME, PASSWORD)


@pytest.fixture
def store() -> CodeStore:
    """A fresh, empty code store."""
    return CodeStore()


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample redirect lookup."""
    return (
        b"GET /k902KW0?utm=x HTTP/1.1\r\n"
        b"Host: localhost:8887\r\n"
        b"User-Agent: pytest\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request(auth_header: str) -> bytes:
    """Sample authenticated shorten request."""
    body = b'{"url": "https://www.theobeers.com/"}'
    return (
        b"POST / HTTP/1.1\r\n"
        b"Host: localhost:8887\r\n"
        b"Content-Type: application/json\r\n"
        + f"Authorization: {auth_header}\r\n".encode()
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config(credentials: Credentials) -> ServerConfig:
    """Test server configuration on an ephemeral port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=8,
        timeout=2.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
        credentials=credentials,
    )


class LiveServer:
    """A ShortenerServer running in a background thread."""

    def __init__(self, server: ShortenerServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def store(self) -> CodeStore:
        return self.server.store

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"configure_logging": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(
        self,
        method: str,
        path: str,
        body: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> http.client.HTTPResponse:
        """Send one request on a fresh connection; the body is read eagerly."""
        conn = http.client.HTTPConnection(self.host, self.port, timeout=5)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            response.data = response.read()
            return response
        finally:
            conn.close()

    def shorten(self, url, auth: Optional[str] = None) -> http.client.HTTPResponse:
        headers = {"Content-Type": "application/json"}
        if auth:
            headers["Authorization"] = auth
        return self.request("POST", "/", json.dumps({"url": url}).encode(), headers)

    def send_raw(self, data: bytes) -> bytes:
        """Write raw bytes and read until the server closes the connection."""
        with socket.create_connection((self.host, self.port), timeout=5) as sock:
            sock.sendall(data)
            try:
                sock.shutdown(socket.SHUT_WR)
            except OSError:
                pass

            chunks = []
            while True:
                try:
                    chunk = sock.recv(4096)
                except ConnectionResetError:
                    break
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[LiveServer, None, None]:
    """A running server with an empty store."""
    live = LiveServer(ShortenerServer(config))
    live.start()

    yield live

    live.stop()
