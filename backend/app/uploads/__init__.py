"""File upload relay module.

Files posted to /api/upload/* are staged in a local directory, relayed to
Cloudinary, and deleted locally whether or not the upload succeeded.

Upload modes:
- single:     one file under ``file``       -> folder single-uploads
- multiple:   many files under ``files``    -> folder multiple-uploads
- multifield: files under several fields    -> folder multifield-uploads/<field>

Multi-file modes are all-or-nothing: one failed upload fails the request.
"""
from .errors import (
    InputError,
    InternalError,
    LimitExceeded,
    LimitKind,
    NoFileProvided,
    NoFilesProvided,
    RemoteUploadFailed,
    UploadError,
)
from .schemas import RemoteAsset, StagedFile, UploadOutcome, UploadResult
from .staging import FieldLimit, LocalStaging
from .store import RemoteStore
from .cloudinary_store import CloudinaryStore
from .orchestrator import UploadOrchestrator

__all__ = [
    "CloudinaryStore",
    "FieldLimit",
    "InputError",
    "InternalError",
    "LimitExceeded",
    "LimitKind",
    "LocalStaging",
    "NoFileProvided",
    "NoFilesProvided",
    "RemoteAsset",
    "RemoteStore",
    "RemoteUploadFailed",
    "StagedFile",
    "UploadError",
    "UploadOrchestrator",
    "UploadOutcome",
    "UploadResult",
]
