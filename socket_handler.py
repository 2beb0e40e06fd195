"""Low-level socket read/write utilities."""

from __future__ import annotations

import logging
import socket
from typing import BinaryIO

from config import BUFFER_SIZE, WRITE_CHUNK_SIZE
from response import HTTPResponse, prepare_response

logger = logging.getLogger(__name__)


class HTTPReadError(Exception):
    """Raised when a client request cannot be read from the socket."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out before sending request bytes."""


class ResponseBodyUnavailableError(OSError):
    """Raised when a resolved file cannot be opened for transmission.

    Nothing has been written to the socket when this is raised, so the
    caller is free to send a different response instead.
    """


def read_http_request(client_socket: socket.socket, buffer_size: int = BUFFER_SIZE) -> bytes:
    """Perform a single receive and return whatever bytes arrived."""
    try:
        return client_socket.recv(buffer_size)
    except socket.timeout as exc:
        raise SocketTimeoutError("Timed out waiting for request bytes") from exc


def write_http_response_message(
    client_socket: socket.socket,
    response: HTTPResponse,
    *,
    write_chunk_size: int = WRITE_CHUNK_SIZE,
) -> int:
    """Write the header block and body, streaming file bodies in chunks."""
    prepared = prepare_response(response)

    if prepared.file_path is None:
        payload = prepared.head + (prepared.body or b"")
        client_socket.sendall(payload)
        return len(payload)

    try:
        file_obj = prepared.file_path.open("rb")
    except OSError as exc:
        raise ResponseBodyUnavailableError(
            f"Cannot open {prepared.file_path.name} for transmission"
        ) from exc

    with file_obj:
        client_socket.sendall(prepared.head)
        body_sent = _stream_file(client_socket, file_obj, prepared.content_length, write_chunk_size)

    if body_sent != prepared.content_length:
        logger.warning(
            "Short body for %s: announced=%s sent=%s",
            prepared.file_path.name,
            prepared.content_length,
            body_sent,
        )
    return len(prepared.head) + body_sent


def _stream_file(
    client_socket: socket.socket,
    file_obj: BinaryIO,
    content_length: int,
    write_chunk_size: int,
) -> int:
    remaining = content_length
    offset = 0
    can_use_sendfile = isinstance(client_socket, socket.socket)
    while remaining > 0:
        count = min(write_chunk_size, remaining)
        if can_use_sendfile:
            sent = client_socket.sendfile(file_obj, offset, count)
        else:
            chunk = file_obj.read(count)
            client_socket.sendall(chunk)
            sent = len(chunk)
        if sent <= 0:
            break
        remaining -= sent
        offset += sent
    return offset
