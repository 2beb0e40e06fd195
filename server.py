"""Iterative static HTML server: accept loop, connection lifecycle and CLI."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import sys
import time
from dataclasses import dataclass
from pathlib import Path

from config import (
    ACCEPT_RETRY_DELAY_SECS,
    ACCEPT_TIMEOUT_SECS,
    DOCUMENT_ROOT,
    FALLBACK_NOT_FOUND_BODY,
    HOST,
    LISTEN_BACKLOG,
    LOG_FORMAT,
    NOT_FOUND_PAGE,
    PORT,
    SENTINEL_PAGE,
    SOCKET_TIMEOUT_SECS,
    STOP_ON_MISSING_SENTINEL,
)
from request import HTTPRequest, HTTPRequestParseError
from resolver import NOT_FOUND, resolve_file
from response import HTTPResponse, build_response
from socket_handler import (
    HTTPReadError,
    ResponseBodyUnavailableError,
    read_http_request,
    write_http_response_message,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConnectionResult:
    """Outcome of one connection, telling the accept loop whether to go on."""

    keep_serving: bool = True
    method: str | None = None
    path: str | None = None
    status_code: int | None = None
    bytes_sent: int = 0


class HTTPServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        *,
        root: str | Path = DOCUMENT_ROOT,
        backlog: int = LISTEN_BACKLOG,
        stop_on_missing_sentinel: bool = STOP_ON_MISSING_SENTINEL,
        log_format: str = LOG_FORMAT,
    ) -> None:
        self.host = host
        self.port = port
        self.root = Path(root)
        self.backlog = backlog
        self.stop_on_missing_sentinel = stop_on_missing_sentinel
        self.log_format = log_format
        self._running = False

    def start(self) -> None:
        """Bind, then serve one connection at a time until told to stop."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(self.backlog)
            server_socket.settimeout(ACCEPT_TIMEOUT_SECS)
            self._running = True
            self.port = server_socket.getsockname()[1]
            logger.info("Web server started, listening on port %s", self.port)

            while self._running:
                try:
                    client_socket, address = server_socket.accept()
                except socket.timeout:
                    continue
                except OSError:
                    if not self._running:
                        break
                    logger.warning("Accept failed; continuing", exc_info=True)
                    time.sleep(ACCEPT_RETRY_DELAY_SECS)
                    continue

                result = self.handle_connection(client_socket, address)
                if not result.keep_serving:
                    self._running = False

        logger.info("Web server stopped")

    def stop(self) -> None:
        self._running = False

    def handle_connection(
        self, client_socket: socket.socket, address: tuple[str, int]
    ) -> ConnectionResult:
        """Serve a single request and close the connection on every path."""
        with client_socket:
            started_at = time.perf_counter()
            client_socket.settimeout(SOCKET_TIMEOUT_SECS)
            try:
                raw = read_http_request(client_socket)
                if not raw:
                    logger.debug("Empty request from %s; abandoning", address[0])
                    return ConnectionResult()
                request = HTTPRequest.from_bytes(raw)
            except (HTTPReadError, HTTPRequestParseError, OSError) as exc:
                logger.warning("Abandoning connection from %s: %s", address[0], exc)
                return ConnectionResult()

            try:
                result = self._serve(client_socket, request)
            except Exception:
                logger.exception("Unhandled error while serving %s", request.path)
                return ConnectionResult(method=request.method, path=request.path)

            self._record_and_log(address=address, result=result, started_at=started_at)
            return result

    def _serve(self, client_socket: socket.socket, request: HTTPRequest) -> ConnectionResult:
        logger.info("Requested Page: %s", request.path)

        resolution = resolve_file(request.path, self.root)
        not_found_page = NOT_FOUND if resolution.found else resolve_file(NOT_FOUND_PAGE, self.root)
        is_sentinel = request.path == SENTINEL_PAGE
        keep_serving = not (
            is_sentinel and (resolution.found or self.stop_on_missing_sentinel)
        )

        if resolution.found and not keep_serving:
            status = "Found and stopping the web server!"
        elif resolution.found:
            status = "Found and serviced"
        elif not keep_serving:
            status = f"{SENTINEL_PAGE} not found, but stopping anyway."
        elif not_found_page.found:
            status = f"Not found and sent {NOT_FOUND_PAGE}"
        else:
            status = f"Not found, {NOT_FOUND_PAGE} also missing"

        response = build_response(resolution, not_found_page)
        response, bytes_sent = self._transmit(client_socket, response)
        logger.info("Status: %s", status)

        return ConnectionResult(
            keep_serving=keep_serving,
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            bytes_sent=bytes_sent,
        )

    def _transmit(
        self, client_socket: socket.socket, response: HTTPResponse
    ) -> tuple[HTTPResponse, int]:
        try:
            try:
                return response, write_http_response_message(client_socket, response)
            except ResponseBodyUnavailableError as exc:
                logger.warning("%s; sending minimal not-found page", exc)
                response = HTTPResponse(status_code=404, body=FALLBACK_NOT_FOUND_BODY)
                return response, write_http_response_message(client_socket, response)
        except OSError as exc:
            logger.warning("Failed to send response: %s", exc)
            return response, 0

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        result: ConnectionResult,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": address[0],
            "method": result.method,
            "path": result.path,
            "status": result.status_code,
            "bytes_out": result.bytes_sent,
            "latency_ms": round(duration_ms, 3),
            "keep_serving": result.keep_serving,
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_out=%s duration_ms=%.2f keep_serving=%s",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_out"],
            duration_ms,
            event["keep_serving"],
        )


def parse_port(raw_port: str) -> int:
    """Validate an operator-supplied port, raising ValueError when unusable."""
    try:
        port = int(raw_port.strip())
    except ValueError as exc:
        raise ValueError("Invalid port number.") from exc
    if port <= 0 or port > 65535:
        raise ValueError("Invalid port number.")
    return port


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=f"Serve static HTML files until {SENTINEL_PAGE} is requested"
    )
    parser.add_argument("--port", help="Port to listen on (prompted when omitted)")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--root", default=DOCUMENT_ROOT, help="Directory to serve")
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    parser.add_argument(
        "--stop-on-missing-sentinel",
        action="store_true",
        default=STOP_ON_MISSING_SENTINEL,
        help=f"Shut down on a request for {SENTINEL_PAGE} even when the file is absent",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    raw_port = args.port
    if raw_port is None:
        try:
            raw_port = input("Port: ")
        except EOFError:
            print("Error reading port.", file=sys.stderr)
            return 1

    try:
        port = parse_port(raw_port)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    if not Path(args.root).is_dir():
        print(f"Document root is not a directory: {args.root}", file=sys.stderr)
        return 1

    server = HTTPServer(
        host=args.host,
        port=port,
        root=args.root,
        stop_on_missing_sentinel=args.stop_on_missing_sentinel,
        log_format=args.log_format,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    except OSError as exc:
        print(f"Failed to start server on port {port}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
