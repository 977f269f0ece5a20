"""
End-to-end tests against a live server over real sockets.
"""

import socket
import threading
import time

import pytest


def read_response(sock_file) -> tuple[int, dict, bytes]:
    """
    Read one response from a socket file: status, headers, body.

    Headers are returned with lower-cased names.
    """
    status_line = sock_file.readline().decode("latin-1")
    assert status_line, "connection closed before a response arrived"
    status = int(status_line.split(" ", 2)[1])

    headers = {}
    while True:
        line = sock_file.readline().decode("latin-1").rstrip("\r\n")
        if not line:
            break
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    body = sock_file.read(int(headers.get("content-length", "0")))
    return status, headers, body


def exchange(test_server, raw: bytes) -> tuple[int, dict, bytes]:
    """Send raw bytes on a fresh connection and read one response."""
    with test_server.connect() as sock:
        sock.sendall(raw)
        with sock.makefile("rb") as f:
            return read_response(f)


class TestBasicRoutes:
    """Tests for the default route table."""

    def test_echo(self, test_server):
        status, headers, body = exchange(
            test_server, b"GET /echo/abc HTTP/1.1\r\nHost: localhost\r\n\r\n"
        )

        assert status == 200
        assert body == b"abc"
        assert headers["content-type"] == "text/plain"
        assert headers["content-length"] == "3"
        assert headers["connection"] == "keep-alive"

    def test_root(self, test_server):
        status, headers, body = exchange(test_server, b"GET / HTTP/1.1\r\n\r\n")

        assert status == 200
        assert body == b""

    def test_user_agent(self, test_server):
        status, _, body = exchange(
            test_server, b"GET /user-agent HTTP/1.1\r\nUser-Agent: foobar/1.2.3\r\n\r\n"
        )

        assert status == 200
        assert body == b"foobar/1.2.3"

    def test_file_round_trip(self, test_server, files_dir):
        status, _, _ = exchange(
            test_server,
            b"POST /files/upload.txt HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello",
        )
        assert status == 201
        assert (files_dir / "upload.txt").read_bytes() == b"hello"

        status, headers, body = exchange(
            test_server, b"GET /files/upload.txt HTTP/1.1\r\n\r\n"
        )
        assert status == 200
        assert headers["content-type"] == "application/octet-stream"
        assert body == b"hello"


class TestKeepAlive:
    """Persistent connection behaviour."""

    def test_several_requests_on_one_connection(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            for text in (b"one", b"two", b"three"):
                sock.sendall(b"GET /echo/" + text + b" HTTP/1.1\r\n\r\n")
                status, _, body = read_response(f)
                assert status == 200
                assert body == text

    def test_not_found_keeps_connection_open(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /missing HTTP/1.1\r\n\r\n")
            status, headers, body = read_response(f)
            assert status == 404
            assert headers["connection"] == "keep-alive"

            sock.sendall(b"GET /echo/still-open HTTP/1.1\r\n\r\n")
            status, _, body = read_response(f)
            assert status == 200
            assert body == b"still-open"

    def test_pipelined_requests(self, test_server):
        """Requests sent back to back are answered in order."""
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(
                b"POST /echo/first HTTP/1.1\r\nContent-Length: 4\r\n\r\nbody"
                b"GET /echo/second HTTP/1.1\r\n\r\n"
            )
            assert read_response(f)[2] == b"first"
            assert read_response(f)[2] == b"second"

    def test_connection_close(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /echo/bye HTTP/1.1\r\nConnection: close\r\n\r\n")
            status, headers, body = read_response(f)

            assert status == 200
            assert headers["connection"] == "close"
            assert body == b"bye"
            assert f.read() == b""

    def test_concurrent_connections(self, test_server):
        results = {}

        def client(n: int):
            status, _, body = exchange(
                test_server, f"GET /echo/{n} HTTP/1.1\r\n\r\n".encode()
            )
            results[n] = (status, body)

        threads = [threading.Thread(target=client, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert results == {n: (200, str(n).encode()) for n in range(8)}


class TestErrors:
    """Malformed input and handler failures."""

    def test_malformed_request_gets_400_and_close(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GARBAGE\r\n\r\n")
            status, headers, body = read_response(f)

            assert status == 400
            assert headers["connection"] == "close"
            assert body == b"Bad Request"
            assert f.read() == b""

    def test_oversized_body_gets_413(self, test_server):
        """The server's max_body_size is 1024 in the fixture."""
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"POST /files/big HTTP/1.1\r\nContent-Length: 5000\r\n\r\n")
            status, headers, _ = read_response(f)

            assert status == 413
            assert headers["connection"] == "close"

    def test_rejected_body_is_not_read_after_413(self, test_server):
        """A client that keeps streaming the rejected body is cut off quickly."""
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"POST /files/big HTTP/1.1\r\nContent-Length: 100000000\r\n\r\n")
            assert read_response(f)[0] == 413

            chunk = b"x" * 4096
            sent = 0
            started = time.monotonic()
            with pytest.raises(OSError):
                while time.monotonic() - started < 5.0:
                    sock.sendall(chunk)
                    sent += len(chunk)
                    time.sleep(0.001)

            assert time.monotonic() - started < 4.0
            assert sent < 10 * 1024 * 1024

    def test_handler_exception_gets_500(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /boom HTTP/1.1\r\n\r\n")
            status, _, body = read_response(f)
            assert status == 500
            assert body == b"Internal Server Error"

            # The connection survives a handler failure
            sock.sendall(b"GET /echo/ok HTTP/1.1\r\n\r\n")
            assert read_response(f)[2] == b"ok"

    def test_handler_oserror_gets_500(self, test_server):
        """An OSError from handler code is a handler failure, not a dead socket."""
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /disk HTTP/1.1\r\n\r\n")
            status, headers, body = read_response(f)
            assert status == 500
            assert headers["connection"] == "keep-alive"
            assert body == b"Internal Server Error"

            sock.sendall(b"GET /echo/ok HTTP/1.1\r\n\r\n")
            assert read_response(f)[2] == b"ok"

    def test_file_name_too_long_is_answered(self, test_server):
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /files/" + b"a" * 300 + b" HTTP/1.1\r\n\r\n")
            status, _, _ = read_response(f)
            assert status == 500

            sock.sendall(b"GET /echo/after HTTP/1.1\r\n\r\n")
            assert read_response(f)[2] == b"after"

    def test_handler_without_write_is_finalized(self, test_server):
        """A handler that never calls write() still produces its response."""
        with test_server.connect() as sock, sock.makefile("rb") as f:
            sock.sendall(b"GET /silent HTTP/1.1\r\n\r\n")
            status, _, body = read_response(f)
            assert status == 202
            assert body == b"not written"

            sock.sendall(b"GET /echo/next HTTP/1.1\r\n\r\n")
            assert read_response(f)[2] == b"next"

    def test_client_disconnect_does_not_stop_server(self, test_server):
        sock = test_server.connect()
        sock.sendall(b"GET /echo/half")
        sock.close()

        status, _, body = exchange(test_server, b"GET /echo/alive HTTP/1.1\r\n\r\n")
        assert status == 200
        assert body == b"alive"


class TestShutdown:
    """Server lifecycle."""

    def test_shutdown_stops_accepting(self, test_server):
        port = test_server.port
        test_server.stop()

        with pytest.raises(OSError):
            socket.create_connection(("127.0.0.1", port), timeout=1.0).close()
