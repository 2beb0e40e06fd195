"""Configuration constants for the static HTML server."""

HOST: str = "0.0.0.0"
PORT: int = 8080
BUFFER_SIZE: int = 4096
WRITE_CHUNK_SIZE: int = 4096
LISTEN_BACKLOG: int = 5
ACCEPT_TIMEOUT_SECS: float = 0.2
ACCEPT_RETRY_DELAY_SECS: float = 0.1
SOCKET_TIMEOUT_SECS: int = 5
DOCUMENT_ROOT: str = "."
INDEX_PAGE: str = "index.html"
NOT_FOUND_PAGE: str = "404.html"
SENTINEL_PAGE: str = "exit.html"
CONTENT_TYPE: str = "text/html"
FALLBACK_NOT_FOUND_BODY: bytes = b"<html><h1>404 Requesting page not found.</h1></html>"
STOP_ON_MISSING_SENTINEL: bool = False
LOG_FORMAT: str = "plain"
