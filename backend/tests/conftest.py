"""Shared test fixtures and configuration for backend tests."""
import asyncio
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.config import AppSettings, ServerSettings, UploadSettings
from app.main import create_app
from app.uploads.errors import RemoteUploadFailed
from app.uploads.schemas import RemoteAsset, StagedFile
from app.uploads.staging import LocalStaging
from app.uploads.store import RemoteStore


class FakeStore(RemoteStore):
    """In-memory RemoteStore that records calls and rejects chosen filenames.

    Args:
        fail_on: Filenames whose upload raises RemoteUploadFailed.
        delays:  Per-filename sleep before answering, to shuffle completion order.
    """

    name = "fake"

    def __init__(self, fail_on: Iterable[str] = (), delays: Optional[dict] = None):
        self.fail_on = set(fail_on)
        self.delays = delays or {}
        self.calls: List[Tuple[Path, str, Optional[str]]] = []
        self.content_types: List[Optional[str]] = []
        self.existed_at_upload: List[bool] = []
        self.deleted: List[str] = []

    async def upload(self, local_path, folder, filename=None, content_type=None):
        local_path = Path(local_path)
        filename = filename or local_path.name
        self.calls.append((local_path, folder, filename))
        self.content_types.append(content_type)
        self.existed_at_upload.append(local_path.exists())
        await asyncio.sleep(self.delays.get(filename, 0))
        self.settled(filename)
        if filename in self.fail_on:
            raise RemoteUploadFailed(RuntimeError(f"Cloudinary upload failed: {filename} rejected"))
        stem, _, ext = filename.rpartition(".")
        return RemoteAsset(
            remote_id=f"{folder}/{stem or filename}",
            url=f"https://res.cloudinary.com/demo/image/upload/{folder}/{filename}",
            size_bytes=local_path.stat().st_size,
            format=ext or None,
        )

    def settled(self, filename: str) -> None:
        """Called once an upload has waited out its delay, before it answers."""

    async def delete(self, remote_id, resource_type="image"):
        self.deleted.append(remote_id)

    @property
    def folders(self) -> List[str]:
        return [folder for _, folder, _ in self.calls]


def make_settings(upload_dir: Path, environment: str = "development", **uploads) -> AppSettings:
    upload_values = dict(
        upload_dir=str(upload_dir),
        max_file_size_mb=1,
        max_files=3,
        multifield_max_per_field=2,
    )
    upload_values.update(uploads)
    return AppSettings(
        server=ServerSettings(environment=environment, cors_origin="https://app.example.com"),
        uploads=UploadSettings(**upload_values),
    )


def leftover_files(upload_dir: Path) -> List[Path]:
    """Files still present in the staging directory."""
    if not upload_dir.exists():
        return []
    return [p for p in upload_dir.iterdir() if p.is_file()]


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir) -> AppSettings:
    return make_settings(upload_dir)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def staging(upload_dir) -> LocalStaging:
    return LocalStaging(str(upload_dir), max_file_size_bytes=1024 * 1024, max_files=3)


@pytest.fixture
def make_staged(upload_dir) -> Callable[..., StagedFile]:
    """Write a file into the staging directory and describe it as a StagedFile."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    counter = {"n": 0}

    def _make(
        original_name: str = "photo.png",
        field_name: str = "files",
        content: bytes = b"data",
        content_type: str = "application/octet-stream",
    ) -> StagedFile:
        counter["n"] += 1
        path = upload_dir / f"staged-{counter['n']}{Path(original_name).suffix}"
        path.write_bytes(content)
        return StagedFile(
            field_name=field_name,
            original_name=original_name,
            local_path=path,
            size_bytes=len(content),
            content_type=content_type,
        )

    return _make


@pytest.fixture
def api_client(settings, fake_store) -> TestClient:
    """Provide a TestClient for an app wired to the fake store."""
    return TestClient(create_app(settings, store=fake_store))
