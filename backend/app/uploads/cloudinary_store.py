"""Cloudinary remote store over the REST upload API.

Uploads go to ``POST {base}/{cloud_name}/auto/upload`` so Cloudinary picks
the resource type (image, video, raw) from the content. Requests are signed:

::

    signature = sha1("folder=...&timestamp=...&unique_filename=true&use_filename=true" + api_secret)

Only the parameters that take part in the upload are signed; ``file``,
``api_key``, ``resource_type`` and ``cloud_name`` are excluded.

Response body (fields used)
---------------------------
::

    { "public_id": "...", "secure_url": "https://...", "bytes": 1234,
      "format": "png", "resource_type": "image" }

Errors come back as ``{"error": {"message": "..."}}`` with a 4xx/5xx status.
"""
import hashlib
import logging
import time
from pathlib import Path
from typing import Dict, Optional

import httpx

from app.config import AppSettings

from .errors import RemoteUploadFailed
from .schemas import RemoteAsset
from .store import RemoteStore

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.cloudinary.com/v1_1"


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """Compute the Cloudinary request signature for ``params``."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] != "")
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {resp.status_code}"


class CloudinaryStore(RemoteStore):
    """Remote store backed by Cloudinary.

    Args:
        cloud_name: Cloudinary cloud name.
        api_key:    Cloudinary API key.
        api_secret: Cloudinary API secret (used for signing only, never sent).
        timeout:    Per-request timeout in seconds.
        api_base:   API root, overridable for tests.
        client:     Pre-built ``httpx.AsyncClient``; one is created lazily otherwise.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout: float = 60.0,
        api_base: str = DEFAULT_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._cloud_name = cloud_name
        self._api_key    = api_key
        self._api_secret = api_secret
        self._timeout    = timeout
        self._api_base   = api_base.rstrip("/")
        self._client     = client

    @classmethod
    def from_settings(cls, config: AppSettings) -> "CloudinaryStore":
        creds = config.secrets.cloudinary
        if not (creds.cloud_name and creds.api_key and creds.api_secret):
            logger.warning("Cloudinary credentials are incomplete; uploads will fail")
        return cls(
            cloud_name=creds.cloud_name or "",
            api_key=creds.api_key or "",
            api_secret=creds.api_secret or "",
            timeout=config.uploads.request_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "cloudinary"

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _url(self, resource_type: str, action: str) -> str:
        return f"{self._api_base}/{self._cloud_name}/{resource_type}/{action}"

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        params = dict(params, timestamp=str(int(time.time())))
        params["signature"] = sign_params(params, self._api_secret)
        params["api_key"] = self._api_key
        return params

    # -----------------------------------------------------------------------
    # RemoteStore implementation
    # -----------------------------------------------------------------------

    async def upload(
        self,
        local_path: Path,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> RemoteAsset:
        data = self._signed({
            "folder": folder,
            "use_filename": "true",
            "unique_filename": "true",
        })
        local_path = Path(local_path)
        try:
            with local_path.open("rb") as fh:
                resp = await self._get_client().post(
                    self._url("auto", "upload"),
                    data=data,
                    files={"file": (
                        filename or local_path.name,
                        fh,
                        content_type or "application/octet-stream",
                    )},
                )
        except (httpx.HTTPError, OSError) as e:
            raise RemoteUploadFailed(RuntimeError(f"Cloudinary upload failed: {e}")) from e

        if resp.status_code != 200:
            raise RemoteUploadFailed(
                RuntimeError(f"Cloudinary upload failed: {_error_message(resp)}")
            )

        body = resp.json()
        logger.debug("Cloudinary stored %s as %s", local_path.name, body.get("public_id"))
        return RemoteAsset(
            remote_id=body["public_id"],
            url=body["secure_url"],
            size_bytes=int(body.get("bytes", 0)),
            format=body.get("format"),
            resource_type=body.get("resource_type", "image"),
        )

    async def delete(self, remote_id: str, resource_type: str = "image") -> None:
        data = self._signed({"public_id": remote_id})
        try:
            resp = await self._get_client().post(self._url(resource_type, "destroy"), data=data)
        except httpx.HTTPError as e:
            raise RemoteUploadFailed(
                RuntimeError(f"Cloudinary delete failed: {e}"), message="Delete failed"
            ) from e
        if resp.status_code != 200:
            raise RemoteUploadFailed(
                RuntimeError(f"Cloudinary delete failed: {_error_message(resp)}"),
                message="Delete failed",
            )
        logger.info("Deleted remote asset %s (%s)", remote_id, resp.json().get("result"))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
