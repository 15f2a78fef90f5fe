"""Local staging of multipart uploads.

Incoming files are written to ``<upload_dir>/<uuid><ext>`` before being
relayed to the remote store. Staging enforces the per-request limits (size
per file, files per field, files per request, allowed field names) and owns
deletion of the staged artifacts.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Sequence

from starlette.datastructures import UploadFile
from starlette.requests import Request

from .errors import LimitExceeded
from .schemas import StagedFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

StagedFields = Dict[str, List[StagedFile]]


@dataclass(frozen=True)
class FieldLimit:
    """A multipart field accepted by a route and its max file count."""
    name: str
    max_count: int


def flatten(files_by_field: StagedFields) -> List[StagedFile]:
    return [f for files in files_by_field.values() for f in files]


class LocalStaging:
    """Writes request files to the staging directory and removes them again."""

    def __init__(self, upload_dir: str, max_file_size_bytes: int, max_files: int):
        self._upload_dir = Path(upload_dir)
        self._max_file_size_bytes = max_file_size_bytes
        self._max_files = max_files

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    @property
    def max_file_size_mb(self) -> int:
        return self._max_file_size_bytes // (1024 * 1024)

    def ensure_upload_dir(self) -> None:
        """Ensure the staging directory exists."""
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    # -----------------------------------------------------------------------
    # Parsing
    # -----------------------------------------------------------------------

    async def parse(self, request: Request, limits: Sequence[FieldLimit]) -> StagedFields:
        """Stage every file of a multipart request.

        Args:
            request: The incoming request.
            limits: Fields this route accepts.

        Returns:
            Mapping field name -> staged files, in arrival order. Fields that
            carried no file are absent.

        Raises:
            LimitExceeded: On an unexpected field, too many files, or a file
                over the size limit. Files staged so far are removed first.
        """
        allowed = {limit.name: limit.max_count for limit in limits}
        staged: StagedFields = {}
        total = 0

        # parts beyond max_files + 1 are cut off by the multipart parser itself
        async with request.form(max_files=self._max_files + 1) as form:
            try:
                for field_name, value in form.multi_items():
                    if not isinstance(value, UploadFile) or not value.filename:
                        continue
                    if field_name not in allowed:
                        raise LimitExceeded.unexpected_field(field_name)

                    field_files = staged.setdefault(field_name, [])
                    if len(field_files) >= allowed[field_name]:
                        raise LimitExceeded.too_many_files(allowed[field_name], field_name)
                    total += 1
                    if total > self._max_files:
                        raise LimitExceeded.too_many_files(self._max_files, field_name)

                    field_files.append(await self._write(field_name, value))
            except BaseException:
                self.release_all(flatten(staged))
                raise

        if staged:
            logger.info(
                "Staged %d file(s) for fields %s",
                len(flatten(staged)),
                sorted(staged),
            )
        return staged

    async def _write(self, field_name: str, upload: UploadFile) -> StagedFile:
        """Copy one upload into the staging directory, enforcing the size limit."""
        self.ensure_upload_dir()
        ext = Path(upload.filename).suffix.lower()
        local_path = self._upload_dir / f"{uuid.uuid4()}{ext}"

        size_bytes = 0
        with local_path.open("wb") as dest:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size_bytes += len(chunk)
                if size_bytes > self._max_file_size_bytes:
                    break
                dest.write(chunk)

        if size_bytes > self._max_file_size_bytes:
            self.delete_local(local_path)
            raise LimitExceeded.file_too_large(self.max_file_size_mb, field_name)

        logger.debug("Staged %s as %s (%d bytes)", upload.filename, local_path, size_bytes)
        return StagedFile(
            field_name=field_name,
            original_name=upload.filename,
            local_path=local_path,
            size_bytes=size_bytes,
            content_type=upload.content_type or "application/octet-stream",
        )

    @asynccontextmanager
    async def stage(
        self, request: Request, limits: Sequence[FieldLimit]
    ) -> AsyncIterator[StagedFields]:
        """Stage a request's files and sweep them all on exit, whatever the exit path."""
        staged = await self.parse(request, limits)
        try:
            yield staged
        finally:
            self.release_all(flatten(staged))

    # -----------------------------------------------------------------------
    # Cleanup
    # -----------------------------------------------------------------------

    def delete_local(self, path: Path) -> None:
        """Delete a staged artifact.

        A missing path is a no-op. Other OS errors are logged, never raised.
        """
        try:
            Path(path).unlink()
            logger.info("Deleted local file: %s", path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Error deleting local file %s: %s", path, e)

    def release_all(self, files: Iterable[StagedFile]) -> None:
        """Sweep: delete every given artifact (idempotent)."""
        for staged in files:
            self.delete_local(staged.local_path)
