"""
Unit tests for connection framing and the thread pool.
"""

import socket
import threading
import time

import pytest

from shortener.core import Connection, ConnectionState, ThreadPool
from shortener.http.request import HTTPParseError


@pytest.fixture
def pair():
    """A connected (server, client) socket pair."""
    server, client = socket.socketpair()
    yield server, client
    for s in (server, client):
        try:
            s.close()
        except OSError:
            pass


def make_conn(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 2.0)
    kwargs.setdefault("keep_alive_timeout", 0.2)
    return Connection(socket=sock, address=("127.0.0.1", 1), **kwargs)


class TestConnectionRead:
    """Tests for Connection.read_request."""

    def test_reads_headers_and_body_across_chunks(self, pair):
        server, client = pair
        conn = make_conn(server)

        def send():
            for part in (b"POST / HT", b"TP/1.1\r\nContent-Len", b"gth: 5\r\n\r\nhe", b"llo"):
                client.sendall(part)
                time.sleep(0.01)

        threading.Thread(target=send).start()

        assert conn.read_request() == b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        assert conn.requests_handled == 1

    def test_pipelined_requests_split(self, pair):
        server, client = pair
        conn = make_conn(server)
        client.sendall(b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n")

        assert conn.read_request() == b"GET /a HTTP/1.1\r\n\r\n"
        assert conn.read_request() == b"GET /b HTTP/1.1\r\n\r\n"

    def test_eof_before_anything_is_none(self, pair):
        server, client = pair
        client.shutdown(socket.SHUT_WR)

        assert make_conn(server).read_request() is None

    def test_eof_mid_headers_returns_partial(self, pair):
        """Partial data is handed on so the parser can reject it."""
        server, client = pair
        client.sendall(b"GET / HTTP/1.1\r\nHost")
        client.shutdown(socket.SHUT_WR)

        assert make_conn(server).read_request() == b"GET / HTTP/1.1\r\nHost"

    def test_bad_content_length_frames_as_zero(self, pair):
        server, client = pair
        client.sendall(b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n")

        assert make_conn(server).read_request().endswith(b"\r\n\r\n")

    def test_oversized_headers_413(self, pair):
        server, client = pair
        conn = make_conn(server, max_request_size=64, buffer_size=16)
        client.sendall(b"GET / HTTP/1.1\r\nX: " + b"a" * 200)

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()
        assert exc_info.value.status_code == 413

    def test_oversized_declared_body_413(self, pair):
        server, client = pair
        conn = make_conn(server, max_request_size=64)
        client.sendall(b"POST / HTTP/1.1\r\nContent-Length: 1000\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_request()
        assert exc_info.value.status_code == 413

    def test_first_request_timeout_raises(self, pair):
        server, _ = pair
        conn = make_conn(server, timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_idle_keep_alive_returns_none(self, pair):
        server, client = pair
        conn = make_conn(server)
        client.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn.read_request()

        assert conn.read_request() is None


class TestConnectionWriteAndClose:
    """Tests for sending and closing."""

    def test_send_and_close(self, pair):
        server, client = pair
        conn = make_conn(server)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        client.shutdown(socket.SHUT_WR)
        conn.close()

        assert client.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"
        assert client.recv(1024) == b""
        assert conn.state == ConnectionState.CLOSED

    def test_close_twice(self, pair):
        server, client = pair
        client.close()
        conn = make_conn(server)

        conn.close()
        conn.close()
        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self, pair):
        server, client = pair
        client.close()

        with make_conn(server) as conn:
            pass
        assert conn.state == ConnectionState.CLOSED


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_tasks(self):
        pool = ThreadPool(min_workers=2, max_workers=2)
        pool.start()
        done = threading.Event()

        try:
            assert pool.submit(done.set) is True
            assert done.wait(timeout=2.0)
        finally:
            pool.shutdown(wait=True, timeout=2.0)

    def test_failing_task_does_not_kill_worker(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        done = threading.Event()

        def fail():
            raise RuntimeError("boom")

        try:
            pool.submit(fail)
            pool.submit(done.set)
            assert done.wait(timeout=2.0)
        finally:
            pool.shutdown(wait=True, timeout=2.0)

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(timeout=5.0)

        try:
            pool.submit(block)
            assert started.wait(timeout=2.0)
            assert pool.submit(block) is True   # fills the queue
            assert pool.submit(block) is False
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_scales_up_under_load(self):
        pool = ThreadPool(min_workers=1, max_workers=4, queue_size=10)
        pool.start()
        release = threading.Event()

        try:
            for _ in range(4):
                pool.submit(release.wait, args=(5.0,))
                time.sleep(0.05)
            assert pool.worker_count > 1
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)
