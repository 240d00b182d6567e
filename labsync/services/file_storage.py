"""Local-disk storage for uploaded files.

Only the generated filename and size go to the database. Files live under
``<root>/<area>/<key>/`` so submission files are keyed by distribution and
student, and assignment PDFs by assignment.
"""
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable

from labsync.core.errors import InfrastructureError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

SUBMISSION_AREA = "submissions"
ASSIGNMENT_AREA = "assignments"


@dataclass(frozen=True)
class StoredFile:
    filename: str
    size_bytes: int
    original_name: str


class LocalFileStorage:
    def __init__(self, root: Path, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def _dir(self, area: str, key: str) -> Path:
        return self.root / area / key

    def save(
        self,
        area: str,
        key: str,
        prefix: str,
        original_name: str,
        fileobj: BinaryIO,
        allowed_extensions: Iterable[str],
    ) -> StoredFile:
        ext = Path(original_name or "").suffix.lower()
        if ext not in set(allowed_extensions):
            raise ValidationError(f"File type '{ext or 'none'}' is not allowed", field="file")

        filename = f"{prefix}-{uuid.uuid4().hex}{ext}"
        target_dir = self._dir(area, key)
        target = target_dir / filename

        size = 0
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                while True:
                    chunk = fileobj.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        break
                    out.write(chunk)
        except OSError as exc:
            self._discard(target)
            raise InfrastructureError("File storage is unavailable") from exc

        if size > self.max_bytes:
            self._discard(target)
            limit_mb = self.max_bytes // (1024 * 1024)
            raise ValidationError(f"File size exceeds {limit_mb}MB limit", field="file")
        if size == 0:
            self._discard(target)
            raise ValidationError("Uploaded file is empty", field="file")

        logger.info("Stored %s/%s/%s (%d bytes)", area, key, filename, size)
        return StoredFile(filename=filename, size_bytes=size, original_name=original_name)

    def path_for(self, area: str, key: str, filename: str) -> Path:
        path = self._dir(area, key) / filename
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    def delete(self, area: str, key: str, filename: str) -> None:
        self._discard(self._dir(area, key) / filename)

    def delete_tree(self, area: str, key: str) -> None:
        shutil.rmtree(self._dir(area, key), ignore_errors=True)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove %s", path)


def distribution_key(distribution_id: int) -> str:
    return f"distribution-{distribution_id}"


def submission_key(distribution_id: int, user_id: int) -> str:
    return f"{distribution_key(distribution_id)}/user-{user_id}"


def assignment_key(assignment_id: int) -> str:
    return f"assignment-{assignment_id}"
