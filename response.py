"""HTTP response model and header serializer."""

from dataclasses import dataclass
from email.utils import formatdate
from pathlib import Path

from config import CONTENT_TYPE, FALLBACK_NOT_FOUND_BODY
from resolver import Resolution

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    404: "Not Found",
}


@dataclass(slots=True)
class PreparedResponse:
    head: bytes
    body: bytes | None = None
    file_path: Path | None = None
    content_length: int = 0


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    body: bytes | str = b""
    file_path: Path | None = None
    content_length: int | None = None

    def __post_init__(self) -> None:
        if self.status_code not in REASON_PHRASES:
            raise ValueError(f"Unsupported status code: {self.status_code}")
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.file_path is not None and self.body:
            raise ValueError("Response cannot set both body and file_path")
        if self.file_path is not None and self.content_length is None:
            raise ValueError("File responses need the resolved content length")

    @property
    def reason_phrase(self) -> str:
        return REASON_PHRASES[self.status_code]


def prepare_response(response: HTTPResponse) -> PreparedResponse:
    """Build the header block, stamping the Date at call time."""
    if response.file_path is not None:
        content_length = response.content_length or 0
        body = None
    else:
        body = response.body
        content_length = len(body)

    header_lines = [
        f"HTTP/1.1 {response.status_code} {response.reason_phrase}",
        f"Content-Type: {CONTENT_TYPE}",
        f"Date: {formatdate(timeval=None, localtime=False, usegmt=True)}",
        f"Content-Length: {content_length}",
    ]
    head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
    return PreparedResponse(
        head=head,
        body=body,
        file_path=response.file_path,
        content_length=content_length,
    )


def build_response(resolution: Resolution, not_found_page: Resolution) -> HTTPResponse:
    """Choose the status and body source for a resolved request."""
    if resolution.found:
        return HTTPResponse(
            status_code=200,
            file_path=resolution.file_path,
            content_length=resolution.size,
        )

    if not_found_page.found:
        return HTTPResponse(
            status_code=404,
            file_path=not_found_page.file_path,
            content_length=not_found_page.size,
        )

    return HTTPResponse(status_code=404, body=FALLBACK_NOT_FOUND_BODY)
