"""File storage operations for uploaded files."""

import re
from collections.abc import Iterator
from pathlib import Path

from gatekeep.errors import RangeNotSatisfiableError

CHUNK_SIZE = 64 * 1024

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")
_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


def file_extension(filename: str) -> str:
    """Return the lower-cased extension of a client filename, or "" when it has no usable one."""
    suffix = Path(filename).suffix
    return suffix.lower() if _EXTENSION_RE.match(suffix) else ""


def get_file_path(files_path: str, filename: str) -> Path:
    return Path(files_path) / filename


def write_file(files_path: str, filename: str, content: bytes) -> Path:
    """Write file content to disk, creating the storage directory if needed.

    Returns:
        Path to written file
    """
    file_path = get_file_path(files_path, filename)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(content)
    return file_path


def parse_byte_range(header: str | None, size: int) -> tuple[int, int] | None:
    """Parse a single "bytes=" range into inclusive (start, end) offsets.

    Supports "bytes=start-end", "bytes=start-" and the suffix form "bytes=-length".
    Returns None when the header is absent or is not a single well-formed byte range;
    the whole file is served then.

    Raises:
        RangeNotSatisfiableError: If the range selects no byte of the file
    """
    if not header:
        return None
    match = _RANGE_RE.match(header.strip())
    if match is None:
        return None

    first, last = match.groups()
    if not first:
        if not last:
            return None
        suffix_length = int(last)
        if suffix_length == 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        return max(size - suffix_length, 0), size - 1

    start = int(first)
    end = int(last) if last else size - 1
    if end < start:
        return None
    if start >= size:
        raise RangeNotSatisfiableError(size)
    return start, min(end, size - 1)


def iter_file_range(file_path: Path, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of file_path from start to end inclusive."""
    with file_path.open("rb") as f:
        f.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
