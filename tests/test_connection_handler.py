"""Tests for the per-connection handler and its loop-control result."""

from __future__ import annotations

import logging
import socket
from pathlib import Path

import pytest

import server as server_module
from config import FALLBACK_NOT_FOUND_BODY
from server import HTTPServer


def _exchange(server: HTTPServer, payload: bytes):
    server_side, client_side = socket.socketpair()
    with client_side:
        client_side.settimeout(2)
        if payload:
            client_side.sendall(payload)
        client_side.shutdown(socket.SHUT_WR)
        result = server.handle_connection(server_side, ("test-client", 0))
        received = bytearray()
        while chunk := client_side.recv(65536):
            received.extend(chunk)
    return result, bytes(received), server_side


@pytest.fixture
def server(tmp_path: Path) -> HTTPServer:
    (tmp_path / "index.html").write_bytes(b"hello world")
    (tmp_path / "404.html").write_bytes(b"not found")
    (tmp_path / "exit.html").write_bytes(b"bye!")
    return HTTPServer(root=tmp_path)


def test_found_page_keeps_serving(server: HTTPServer) -> None:
    result, raw, _sock = _exchange(server, b"GET / HTTP/1.1\r\n\r\n")

    assert result.keep_serving is True
    assert result.path == "index.html"
    assert result.status_code == 200
    assert result.bytes_sent == len(raw)
    assert raw.endswith(b"\r\n\r\nhello world")


def test_sentinel_page_is_served_then_stops(server: HTTPServer) -> None:
    result, raw, _sock = _exchange(server, b"GET /exit.html HTTP/1.1\r\n\r\n")

    assert result.keep_serving is False
    assert result.status_code == 200
    assert raw.endswith(b"Content-Length: 4\r\n\r\nbye!")


def test_missing_sentinel_follows_policy(server: HTTPServer) -> None:
    (server.root / "exit.html").unlink()

    default_result, _raw, _sock = _exchange(server, b"GET /exit.html HTTP/1.1\r\n\r\n")
    server.stop_on_missing_sentinel = True
    strict_result, raw, _sock = _exchange(server, b"GET /exit.html HTTP/1.1\r\n\r\n")

    assert default_result.keep_serving is True
    assert strict_result.keep_serving is False
    assert strict_result.status_code == 404
    assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")


def test_empty_read_is_abandoned_and_socket_closed(server: HTTPServer) -> None:
    result, raw, server_side = _exchange(server, b"")

    assert result.keep_serving is True
    assert result.status_code is None
    assert raw == b""
    assert server_side.fileno() == -1


def test_socket_is_closed_after_response(server: HTTPServer) -> None:
    _result, _raw, server_side = _exchange(server, b"GET /missing.html HTTP/1.1\r\n\r\n")

    assert server_side.fileno() == -1


def test_status_lines_are_logged(server: HTTPServer, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="server"):
        _exchange(server, b"GET /missing.html HTTP/1.1\r\n\r\n")
        _exchange(server, b"GET /exit.html HTTP/1.1\r\n\r\n")

    assert "Requested Page: missing.html" in caplog.text
    assert "Status: Not found and sent 404.html" in caplog.text
    assert "Status: Found and stopping the web server!" in caplog.text
    assert "path=missing.html status=404" in caplog.text


def test_json_access_log(server: HTTPServer, caplog: pytest.LogCaptureFixture) -> None:
    server.log_format = "json"

    with caplog.at_level(logging.INFO, logger="server"):
        _exchange(server, b"GET / HTTP/1.1\r\n\r\n")

    assert '"path": "index.html"' in caplog.text
    assert '"status": 200' in caplog.text


class ResettingSocket:
    """Delivers one request, then fails every send like a reset peer."""

    def __init__(self, request: bytes) -> None:
        self.request = request
        self.closed = False

    def __enter__(self) -> "ResettingSocket":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def settimeout(self, _timeout: float) -> None:
        pass

    def recv(self, _size: int) -> bytes:
        return self.request

    def sendall(self, _data: bytes) -> None:
        raise ConnectionResetError(104, "Connection reset by peer")

    def close(self) -> None:
        self.closed = True


def test_every_request_rechecks_the_filesystem(server: HTTPServer) -> None:
    before, raw_before, _sock = _exchange(server, b"GET /new.html HTTP/1.1\r\n\r\n")
    (server.root / "new.html").write_bytes(b"abc")
    after, raw_after, _sock = _exchange(server, b"GET /new.html HTTP/1.1\r\n\r\n")

    assert before.status_code == 404
    assert raw_before.endswith(b"\r\n\r\nnot found")
    assert after.status_code == 200
    assert raw_after.endswith(b"\r\n\r\nabc")


def test_file_vanishing_before_open_sends_inline_not_found(
    server: HTTPServer, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_resolve_file = server_module.resolve_file

    def resolve_then_delete(filename, root):
        resolution = real_resolve_file(filename, root)
        if resolution.found and filename == "index.html":
            resolution.file_path.unlink()
        return resolution

    monkeypatch.setattr(server_module, "resolve_file", resolve_then_delete)

    result, raw, _sock = _exchange(server, b"GET / HTTP/1.1\r\n\r\n")

    assert result.keep_serving is True
    assert result.status_code == 404
    assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert f"Content-Length: {len(FALLBACK_NOT_FOUND_BODY)}\r\n\r\n".encode() in raw
    assert raw.endswith(FALLBACK_NOT_FOUND_BODY)


def test_send_failure_still_honours_sentinel(
    server: HTTPServer, caplog: pytest.LogCaptureFixture
) -> None:
    sock = ResettingSocket(b"GET /exit.html HTTP/1.1\r\n\r\n")

    with caplog.at_level(logging.WARNING, logger="server"):
        result = server.handle_connection(sock, ("test-client", 0))  # type: ignore[arg-type]

    assert result.keep_serving is False
    assert result.bytes_sent == 0
    assert sock.closed is True
    assert "Failed to send response" in caplog.text
