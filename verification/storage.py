import logging
import os
import uuid
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class ImageStore:
    """
    Keeps uploaded images on disk under a single directory.
    The returned reference is the generated file name.
    """

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, ref: str) -> Path:
        if not ref or os.path.basename(ref) != ref or ref.startswith("."):
            raise ValueError(f"Invalid image reference: {ref}")
        return self.root / ref

    def save(self, data: bytes, suffix: str = ".jpg") -> str:
        ref = f"{uuid.uuid4().hex}{suffix}"
        self._path(ref).write_bytes(data)
        return ref

    def exists(self, ref: str) -> bool:
        return self._path(ref).exists()

    def load(self, ref: str) -> bytes:
        return self._path(ref).read_bytes()

    def delete(self, ref: str) -> bool:
        path = self._path(ref)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted file: %s", ref)
        return True

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete files whose modification time is before `cutoff`"""
        cutoff_ts = cutoff.timestamp()
        deleted = 0
        for path in self.root.iterdir():
            if path.is_file() and path.stat().st_mtime < cutoff_ts:
                path.unlink()
                deleted += 1
        return deleted

