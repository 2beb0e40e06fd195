"""HTTP request line model and parser."""

from dataclasses import dataclass
from urllib.parse import unquote

from config import INDEX_PAGE


class HTTPRequestParseError(ValueError):
    """Raised when received bytes do not contain a usable request line."""


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str | None = None
    raw_target: str = "/"

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse the first line of a raw request into method, path and version.

        Only the request line is inspected; headers and body are ignored.
        A missing target is treated as ``/`` and ``/`` itself maps to the
        index page. Exactly one leading separator is stripped from any
        other path.
        """
        tokens = raw.split(b"\n", 1)[0].split()
        if not tokens:
            raise HTTPRequestParseError("Missing request line")

        method = tokens[0].decode("iso-8859-1").upper()
        # File names are UTF-8 on disk; undecodable bytes survive as surrogates.
        raw_target = tokens[1].decode("utf-8", "surrogateescape") if len(tokens) > 1 else "/"
        http_version = tokens[2].decode("iso-8859-1") if len(tokens) > 2 else None

        return cls(
            method=method,
            path=normalize_target(raw_target),
            http_version=http_version,
            raw_target=raw_target,
        )


def normalize_target(raw_target: str) -> str:
    target = raw_target.split("#", 1)[0].split("?", 1)[0]
    target = unquote(target, errors="surrogateescape")
    if target in ("", "/"):
        return INDEX_PAGE
    return target.removeprefix("/")
