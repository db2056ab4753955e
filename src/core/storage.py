from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional

from src.utils.time import utcnow


log = logging.getLogger(__name__)

_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    pass


def default_uploads_dir() -> Path:
    return Path(os.environ.get("UPLOADS_DIR") or "data/uploads")


def safe_name(name: str) -> str:
    base = Path(name or "").name
    s = _SAFE_RE.sub("_", base).strip("._")
    return s[:120] or "upload.csv"


class UploadStore:
    """
    Raw upload bytes on the local filesystem.

    Handles look like "<user>/<timestamp>-<safe name>" and are always resolved
    under `root`; anything escaping it is rejected.
    """

    def __init__(self, root: Optional[str | Path] = None) -> None:
        self.root = Path(root) if root is not None else default_uploads_dir()

    def _path(self, handle: str) -> Path:
        root = self.root.resolve()
        p = (root / handle).resolve()
        if root not in p.parents:
            raise StorageError(f"Invalid storage handle: {handle!r}")
        return p

    def put(self, user_id: str, name: str, content: bytes) -> str:
        ts = utcnow().strftime("%Y%m%dT%H%M%S%f")
        handle = f"{safe_name(user_id)}/{ts}-{safe_name(name)}"
        p = self._path(handle)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
        log.info("Stored upload %s (%d bytes)", handle, len(content))
        return handle

    def get(self, handle: str) -> bytes:
        p = self._path(handle)
        if not p.exists():
            raise StorageError(f"Upload not found in storage: {handle}")
        return p.read_bytes()

    def delete(self, handle: str) -> bool:
        p = self._path(handle)
        if not p.exists():
            return False
        p.unlink()
        return True
