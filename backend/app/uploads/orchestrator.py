"""Upload orchestration for one request.

Three modes share one policy:

- every staged file is deleted right after its own upload settles, success
  or failure
- multi-file modes fan out with ``asyncio.gather()`` and wait for every
  upload to settle before deciding (all-or-nothing)
- a failed request sweeps all of its staged files again; deletion is
  idempotent so files already removed are skipped silently

Results are returned in input order, not completion order.
"""
import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import InternalError, NoFileProvided, NoFilesProvided, RemoteUploadFailed, UploadError
from .schemas import (
    MULTIFIELD_FOLDER,
    MULTIPLE_FOLDER,
    SINGLE_FOLDER,
    StagedFile,
    UploadOutcome,
    UploadResult,
)
from .staging import LocalStaging
from .store import RemoteStore

logger = logging.getLogger(__name__)


def multifield_folder(field_name: str) -> str:
    return f"{MULTIFIELD_FOLDER}/{field_name}"


class UploadOrchestrator:
    """Relays staged files to a RemoteStore.

    Args:
        store: Remote store the files are sent to.
        staging: Staging area that owns the local artifacts.
    """

    def __init__(self, store: RemoteStore, staging: LocalStaging) -> None:
        self._store = store
        self._staging = staging

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def upload_single(self, file: Optional[StagedFile]) -> UploadOutcome:
        """Upload one file to ``single-uploads``."""
        if file is None:
            return UploadOutcome.failed(NoFileProvided())

        logger.info("Uploading single file to %s: %s", self._store.name, file.original_name)
        try:
            result = await self._upload_one(file, SINGLE_FOLDER)
        except Exception as e:
            return self._failure("Single", e, [file])
        return UploadOutcome.ok(result)

    async def upload_multiple(self, files: Sequence[StagedFile]) -> UploadOutcome:
        """Upload every file concurrently to ``multiple-uploads``."""
        if not files:
            return UploadOutcome.failed(NoFilesProvided())

        logger.info("Uploading %d files to %s", len(files), self._store.name)
        try:
            results = await self._upload_all([(f, MULTIPLE_FOLDER) for f in files])
        except Exception as e:
            return self._failure("Multiple", e, files)
        return UploadOutcome.ok(results)

    async def upload_multifield(
        self, files_by_field: Mapping[str, Sequence[StagedFile]]
    ) -> UploadOutcome:
        """Upload each field's files concurrently to ``multifield-uploads/<field>``.

        Fields without files are left out of the result. Any failure in any
        field fails the whole request.
        """
        fields = {name: list(files) for name, files in files_by_field.items() if files}
        if not fields:
            return UploadOutcome.failed(NoFilesProvided())

        logger.info("Uploading multifield files to %s: %s", self._store.name, list(fields))
        # the mapping key decides both the folder and the result group
        keyed = [(name, f) for name, files in fields.items() for f in files]
        all_files = [f for _, f in keyed]
        try:
            results = await self._upload_all(
                [(f, multifield_folder(name)) for name, f in keyed]
            )
        except Exception as e:
            return self._failure("Multifield", e, all_files)

        grouped: Dict[str, List[UploadResult]] = {name: [] for name in fields}
        for (name, _), result in zip(keyed, results):
            grouped[name].append(result)
        return UploadOutcome.ok(grouped)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _upload_one(self, file: StagedFile, folder: str) -> UploadResult:
        """Upload one file, deleting its local artifact once the attempt settles."""
        try:
            asset = await self._store.upload(
                file.local_path,
                folder,
                filename=file.original_name,
                content_type=file.content_type,
            )
        except UploadError:
            raise
        except Exception as e:
            raise RemoteUploadFailed(e) from e
        finally:
            self._staging.delete_local(file.local_path)
        return UploadResult.from_asset(file, asset)

    async def _upload_all(self, jobs: Sequence[Tuple[StagedFile, str]]) -> List[UploadResult]:
        """Fan out and wait for every upload to settle; raise the first failure."""
        settled = await asyncio.gather(
            *[self._upload_one(f, folder) for f, folder in jobs],
            return_exceptions=True,
        )
        failures = [r for r in settled if isinstance(r, BaseException)]
        if failures:
            if len(failures) > 1:
                logger.warning("%d of %d uploads failed", len(failures), len(jobs))
            raise failures[0]
        return list(settled)

    def _failure(
        self, mode: str, error: Exception, files: Sequence[StagedFile]
    ) -> UploadOutcome:
        """Sweep every staged file of the request and build the failure outcome."""
        self._staging.release_all(files)
        if isinstance(error, UploadError):
            logger.error("%s upload error: %s", mode, error.detail)
            return UploadOutcome.failed(error)
        logger.exception("%s upload error", mode, exc_info=error)
        return UploadOutcome.failed(InternalError(error))
