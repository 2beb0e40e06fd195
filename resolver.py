"""Map requested file names onto the document root."""

import stat
from dataclasses import dataclass
from pathlib import Path

from config import DOCUMENT_ROOT


@dataclass(slots=True, frozen=True)
class Resolution:
    found: bool
    size: int = 0
    file_path: Path | None = None


NOT_FOUND = Resolution(found=False)


def resolve_file(filename: str, root: str | Path = DOCUMENT_ROOT) -> Resolution:
    """Stat a file under ``root`` and report whether it can be served.

    Paths escaping the root, missing or unreadable paths and anything that
    is not a regular file all resolve to not-found.
    """
    document_root = Path(root).resolve()
    try:
        candidate = (document_root / filename).resolve()
        candidate.relative_to(document_root)
        file_stat = candidate.stat()
    except (OSError, ValueError):
        # ValueError covers both escaping the root and embedded NUL bytes.
        return NOT_FOUND

    if not stat.S_ISREG(file_stat.st_mode):
        return NOT_FOUND

    return Resolution(found=True, size=file_stat.st_size, file_path=candidate)
