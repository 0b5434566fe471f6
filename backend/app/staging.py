"""Temp file store: uploaded bytes staged on disk for the duration of one request."""
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from fastapi import UploadFile

from app import config as app_config
from app.errors import AppError, ErrorKind

logger = logging.getLogger("converter.staging")


def safe_delete(path: Optional[Path]) -> bool:
    """Remove a staged file. A file that is already gone counts as deleted."""
    if path is None:
        return False
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning("Could not remove staged file %s: %s", path, e)
        return False


@dataclass
class StagedFile:
    """One uploaded file and the staging path it owns."""

    original_name: str
    path: Path
    content_type: Optional[str]
    size: int
    index: int
    _deleted: bool = field(default=False, repr=False)

    @property
    def extension(self) -> str:
        return Path(self.original_name).suffix.lower().lstrip(".")

    @property
    def deleted(self) -> bool:
        return self._deleted

    def delete(self) -> None:
        """Delete the staging path; later calls are no-ops."""
        if self._deleted:
            return
        self._deleted = True
        safe_delete(self.path)


def delete_all(files: Iterable[StagedFile]) -> None:
    for staged in files:
        staged.delete()


def _staging_path(filename: str) -> Path:
    ext = Path(filename).suffix.lower()
    if not ext[1:].isalnum():
        ext = ""
    return app_config.UPLOAD_DIR / f"{uuid.uuid4().hex}{ext}"


async def stage_upload(file: UploadFile, index: int) -> StagedFile:
    """Stream one upload to the staging directory, enforcing the per-file size limit."""
    filename = file.filename or ""
    dest = _staging_path(filename)
    max_bytes = app_config.MAX_FILE_SIZE_BYTES
    total = 0
    try:
        with open(dest, "wb") as f:
            while chunk := await file.read(1024 * 1024):
                total += len(chunk)
                if total > max_bytes:
                    raise AppError(
                        ErrorKind.FILE_TOO_LARGE,
                        f"File too large: {filename} (max {app_config.MAX_FILE_SIZE_MB} MB)",
                    )
                f.write(chunk)
    except BaseException:
        safe_delete(dest)
        raise
    return StagedFile(
        original_name=filename,
        path=dest,
        content_type=(file.content_type or "").lower() or None,
        size=total,
        index=index,
    )


async def stage_uploads(files: list[UploadFile]) -> list[StagedFile]:
    """Stage every upload in arrival order; on any failure nothing stays on disk."""
    staged: list[StagedFile] = []
    try:
        for index, file in enumerate(files):
            staged.append(await stage_upload(file, index))
    except AppError:
        delete_all(staged)
        raise
    except Exception as e:
        delete_all(staged)
        logger.exception("Upload staging failed: %s", e)
        raise AppError(ErrorKind.INTERNAL, "Upload failed") from e
    except BaseException:
        delete_all(staged)
        raise
    logger.debug("Staged %s file(s) in %s", len(staged), app_config.UPLOAD_DIR)
    return staged
