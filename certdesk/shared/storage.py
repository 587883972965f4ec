import logging
import os
import re
import tempfile
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger("certdesk.storage")

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


def ensure_dir(path: str) -> None:
    """Create directory if missing (mkdir -p equivalent)."""
    os.makedirs(path, exist_ok=True)


def write_atomic(path: str, data: bytes) -> None:
    """Write data to a temporary file then atomically rename to target path."""
    dir_path = os.path.dirname(path)
    ensure_dir(dir_path)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def is_safe_key(key: str | None) -> bool:
    """Keys are flat file names; reject anything that could escape the root."""
    return bool(key) and bool(_KEY_RE.match(key)) and ".." not in key


@contextmanager
def materialized(data: bytes, *, work_dir: str | None = None, suffix: str = ".pdf") -> Iterator[str]:
    """Yield a temporary file holding ``data``; the file is always removed."""
    if work_dir:
        ensure_dir(work_dir)
    fd, tmp_path = tempfile.mkstemp(dir=work_dir, suffix=suffix, prefix="cert_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield tmp_path
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
            logger.debug("[TMP-CLEANUP] removed %s", tmp_path)
