from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from casedesk.config import BLOB_DIR

logger = logging.getLogger(__name__)


class BlobStorage:
    """Bucketed file storage under the application data directory."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root or BLOB_DIR)

    def put(self, bucket: str, path: str, data: bytes) -> str:
        target = self.resolve(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored blob %s/%s (%d bytes)", bucket, path, len(data))
        return f"{bucket}/{PurePosixPath(path).as_posix()}"

    def read(self, bucket: str, path: str) -> bytes:
        return self.resolve(bucket, path).read_bytes()

    def exists(self, bucket: str, path: str) -> bool:
        return self.resolve(bucket, path).exists()

    def resolve(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise ValueError(f"Invalid bucket name: {bucket!r}")
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid blob path: {path!r}")
        return self.root / bucket / Path(*relative.parts)
