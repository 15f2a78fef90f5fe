"""Abstract RemoteStore interface.

Every media store back-end (Cloudinary today) implements this interface so
the orchestrator stays store-agnostic.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .schemas import RemoteAsset


class RemoteStore(ABC):
    """Abstract base class for remote media stores.

    Implementations must be safe to call concurrently from one event loop:
    the orchestrator fans uploads out with ``asyncio.gather()``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store identifier (used for logging)."""

    @abstractmethod
    async def upload(
        self,
        local_path: Path,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> RemoteAsset:
        """Upload a local file into a logical folder.

        Args:
            local_path: Staged file to send.
            folder: Remote folder/category, e.g. ``"single-uploads"``.
            filename: Name to present to the store; defaults to the local name.
            content_type: MIME type declared by the client, if known.

        Returns:
            The stored asset's descriptor.

        Raises:
            RemoteUploadFailed: On any network or service error. No retries.
        """

    @abstractmethod
    async def delete(self, remote_id: str, resource_type: str = "image") -> None:
        """Delete a stored asset by its remote id."""

    async def aclose(self) -> None:
        """Release network resources. No-op by default."""
