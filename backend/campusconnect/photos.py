import logging
import os
import re
import time
from pathlib import Path
from typing import BinaryIO, Optional

from .errors import InvalidInput

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")
_CHUNK = 64 * 1024


class PhotoStore:
    """Profile photos kept as plain files under ``root``."""

    def __init__(self, root: str, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def save(self, stream: BinaryIO, original_name: str, owner_name: str) -> str:
        """Copy ``stream`` to ``<owner_name>-<millis><ext>``; return the file name."""
        self.root.mkdir(parents=True, exist_ok=True)
        ext = os.path.splitext(original_name or "")[1].lower()
        stem = _UNSAFE.sub("_", owner_name or "").strip("._") or "photo"
        file_name = f"{stem}-{int(time.time() * 1000)}{_UNSAFE.sub('', ext)}"
        target = self.root / file_name

        written = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = stream.read(_CHUNK)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise InvalidInput(f"File exceeds {self.max_bytes} bytes")
                    out.write(chunk)
        except InvalidInput:
            target.unlink(missing_ok=True)
            raise
        if written == 0:
            target.unlink(missing_ok=True)
            raise InvalidInput("Empty file")
        return file_name

    def path_for(self, file_name: str) -> Optional[Path]:
        if not file_name:
            return None
        path = self.root / Path(file_name).name
        return path if path.is_file() else None

    def delete(self, file_name: str) -> None:
        path = self.path_for(file_name)
        if path is None:
            return
        try:
            path.unlink()
        except OSError:
            logger.warning("Could not remove photo %s", path, exc_info=True)
