"""
Unit tests for Connection, over a local socket pair.
"""

import socket
import threading
import time

import pytest

from httpengine.core.connection import Connection, ConnectionState, DRAIN_TIMEOUT
from httpengine.http.request import RequestParser


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5.0)
    yield server_side, client_side
    client_side.close()
    server_side.close()


class TestConnection:
    """Tests for Connection class."""

    def test_initial_state(self, socket_pair):
        server_side, _ = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000))

        assert conn.state == ConnectionState.AWAIT_REQUEST
        assert conn.client_ip == "127.0.0.1"
        assert conn.client_port == 5000
        assert len(conn.id) == 8
        assert conn.age >= 0
        assert conn.closed is False

    def test_reader_parses_pipelined_requests(self, socket_pair):
        """The buffered reader keeps leftover bytes for the next parse."""
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000), timeout=5.0)
        client_side.sendall(b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n")
        parser = RequestParser()

        assert parser.parse(conn.reader).path == "/a"
        assert parser.parse(conn.reader).path == "/b"

    def test_send(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000))

        conn.send(b"HTTP/1.1 200 OK\r\n\r\n")

        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_close_sends_eof(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000))
        client_side.shutdown(socket.SHUT_WR)

        with conn:
            pass

        assert conn.closed is True
        assert client_side.recv(1024) == b""

    def test_close_is_idempotent(self, socket_pair):
        server_side, client_side = socket_pair
        client_side.shutdown(socket.SHUT_WR)
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000))

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_timeout_applied(self, socket_pair):
        server_side, _ = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000), timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.reader.readline()

    def test_close_with_chatty_peer_is_bounded(self, socket_pair):
        """A peer that never stops sending cannot hold close() open."""
        server_side, client_side = socket_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 5000))
        stop = threading.Event()

        def flood():
            chunk = b"x" * 4096
            try:
                while not stop.is_set():
                    client_side.sendall(chunk)
            except OSError:
                pass

        sender = threading.Thread(target=flood, daemon=True)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()
            sender.join(timeout=5.0)

        assert conn.closed is True
        assert elapsed < DRAIN_TIMEOUT + 1.0
