"""Data models for the upload relay.

- StagedFile: a multipart file written to the local staging directory
- RemoteAsset: what the remote store reports back for one upload
- UploadResult: per-file result returned to the client (never persisted)
- UploadOutcome: success/failure of one request, whatever the upload mode
- *UploadResponse: JSON envelopes for the three upload routes

UploadResult serializes with the camelCase names clients already consume
(originalName, cloudinaryId, url, size, format, uploadedAt).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import UploadError


# Remote folders per upload mode
SINGLE_FOLDER     = "single-uploads"
MULTIPLE_FOLDER   = "multiple-uploads"
MULTIFIELD_FOLDER = "multifield-uploads"


@dataclass(frozen=True)
class StagedFile:
    """A file temporarily materialized on local storage pending transfer."""
    field_name: str
    original_name: str
    local_path: Path
    size_bytes: int
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class RemoteAsset:
    """Descriptor of an asset stored by the remote store."""
    remote_id: str
    url: str
    size_bytes: int
    format: Optional[str] = None
    resource_type: str = "image"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UploadResult(BaseModel):
    """Result of one successful upload."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_name: str = Field(..., alias="originalName", description="Client-side filename")
    remote_id: str = Field(..., alias="cloudinaryId", description="Remote public id")
    url: str = Field(..., description="Public (https) URL")
    size_bytes: int = Field(..., alias="size", description="Size reported by the store")
    format: Optional[str] = Field(None, description="Format reported by the store")
    uploaded_at: datetime = Field(default_factory=utc_now, alias="uploadedAt")

    @classmethod
    def from_asset(cls, staged: StagedFile, asset: RemoteAsset) -> "UploadResult":
        return cls(
            original_name=staged.original_name,
            remote_id=asset.remote_id,
            url=asset.url,
            size_bytes=asset.size_bytes,
            format=asset.format,
        )


OutcomeData = Union[UploadResult, List[UploadResult], Dict[str, List[UploadResult]]]


@dataclass
class UploadOutcome:
    """Outcome of one upload request.

    Attributes:
        success: Whether every upload of the request succeeded.
        data: One result, a list, or a field -> list mapping (mode dependent).
        error: The failure, when ``success`` is False.
    """
    success: bool
    data: Optional[OutcomeData] = None
    error: Optional[UploadError] = None

    @classmethod
    def ok(cls, data: OutcomeData) -> "UploadOutcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: UploadError) -> "UploadOutcome":
        return cls(success=False, error=error)

    def unwrap(self) -> OutcomeData:
        """Return ``data`` or raise the failure."""
        if not self.success:
            raise self.error
        return self.data


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class SingleUploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully"
    data: UploadResult


class MultipleUploadResponse(BaseModel):
    success: bool = True
    message: str
    data: List[UploadResult]


class MultifieldUploadResponse(BaseModel):
    success: bool = True
    message: str = "Multifield files uploaded successfully"
    data: Dict[str, List[UploadResult]]
