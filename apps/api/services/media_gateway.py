"""Cloudinary media gateway: stage multipart uploads locally, push them, clean up."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import httpx
from fastapi import UploadFile

from config import require_cloudinary_credentials, settings
from services.errors import InvalidArgument, UploadFailed

logger = logging.getLogger(__name__)

IMAGE_MIME_PREFIXES = ("image/",)
VIDEO_MIME_PREFIXES = ("video/",)
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".m4v", ".webm", ".avi", ".mkv"}
UPLOAD_KINDS = {"auto", "image", "video", "raw"}


@dataclass
class UploadedMedia:
    url: str
    public_id: str
    resource_type: str
    duration: Optional[float] = None


def _safe_filename(name: str) -> str:
    base = os.path.basename(name or "upload.bin")
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_", "."} else "_" for ch in base)
    return cleaned or "upload.bin"


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature: sha1 over sorted `k=v` pairs plus the secret."""
    payload = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1(f"{payload}{api_secret}".encode("utf-8")).hexdigest()


def discard_local(*paths: Optional[Path]) -> None:
    """Remove staged files, logging instead of raising when the filesystem refuses."""
    for path in paths:
        if path is None:
            continue
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not cleanup temporary upload %s: %s", path, exc)


async def stage_upload(
    file: UploadFile,
    *,
    allowed_prefixes: Iterable[str],
    allowed_extensions: Iterable[str],
    max_bytes: int,
    label: str,
) -> Path:
    """Write a multipart upload to the temp dir in chunks and return its path."""
    original_filename = _safe_filename(file.filename or "")
    suffix = Path(original_filename).suffix.lower()
    content_type = (file.content_type or "").lower()
    if suffix not in set(allowed_extensions) and not content_type.startswith(tuple(allowed_prefixes)):
        await file.close()
        raise InvalidArgument(f"Unsupported file type for {label}")

    temp_root = Path(settings.MEDIA_TEMP_DIR)
    temp_root.mkdir(parents=True, exist_ok=True)
    destination = temp_root / f"{uuid.uuid4().hex}_{original_filename}"

    total_size = 0
    try:
        with destination.open("wb") as out:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_bytes:
                    break
                out.write(chunk)
    finally:
        await file.close()

    if total_size > max_bytes:
        discard_local(destination)
        raise InvalidArgument(f"{label} is too large. Max upload size is {max_bytes // (1024 * 1024)}MB.")
    if total_size == 0:
        discard_local(destination)
        raise InvalidArgument(f"{label} is empty")
    return destination


class MediaGateway:
    """Thin async client for the Cloudinary upload API.

    Files are streamed from disk. Anything larger than `chunk_size` goes up as a
    chunked upload (`X-Unique-Upload-Id` + `Content-Range`), so memory use per
    request stays at one chunk.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        *,
        api_base: str = "https://api.cloudinary.com/v1_1",
        folder: Optional[str] = None,
        timeout: float = 120.0,
        chunk_size: int = 20 * 1024 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_base = api_base.rstrip("/")
        self.folder = folder
        self.timeout = timeout
        self.chunk_size = max(int(chunk_size), 1)
        self._transport = transport

    def _endpoint(self, resource_type: str, action: str) -> str:
        return f"{self.api_base}/{self.cloud_name}/{resource_type}/{action}"

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["timestamp"] = int(time.time())
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post_streamed(
        self,
        client: httpx.AsyncClient,
        path: Path,
        endpoint: str,
        data: Dict[str, Any],
    ) -> httpx.Response:
        with path.open("rb") as handle:
            return await client.post(endpoint, data=data, files={"file": (path.name, handle)})

    async def _post_chunked(
        self,
        client: httpx.AsyncClient,
        path: Path,
        endpoint: str,
        data: Dict[str, Any],
        total_size: int,
    ) -> httpx.Response:
        upload_id = uuid.uuid4().hex
        start = 0
        with path.open("rb") as handle:
            while True:
                chunk = await asyncio.to_thread(handle.read, self.chunk_size)
                end = start + len(chunk) - 1
                response = await client.post(
                    endpoint,
                    data=data,
                    files={"file": (path.name, chunk)},
                    headers={
                        "X-Unique-Upload-Id": upload_id,
                        "Content-Range": f"bytes {start}-{end}/{total_size}",
                    },
                )
                start = end + 1
                if response.status_code >= 400 or start >= total_size:
                    return response

    async def upload(self, local_path: str | Path, kind: str = "auto") -> UploadedMedia:
        """Upload a local file and delete it afterwards, whatever the outcome."""
        path = Path(local_path)
        resource_type = kind if kind in UPLOAD_KINDS else "auto"
        try:
            if not path.is_file():
                raise UploadFailed(f"Local file missing: {path.name}")
            total_size = path.stat().st_size
            endpoint = self._endpoint(resource_type, "upload")
            data = self._signed({"folder": self.folder})
            async with self._client() as client:
                if total_size > self.chunk_size:
                    response = await self._post_chunked(client, path, endpoint, data, total_size)
                else:
                    response = await self._post_streamed(client, path, endpoint, data)
            if response.status_code >= 400:
                raise UploadFailed(f"Storage service rejected upload ({response.status_code})")
            payload = response.json()
            url = payload.get("secure_url") or payload.get("url")
            public_id = payload.get("public_id")
            if not url or not public_id:
                raise UploadFailed("Storage service response missing url or public_id")
        except httpx.HTTPError as exc:
            logger.warning("Upload of %s failed: %s", path.name, exc)
            raise UploadFailed("Media upload failed") from exc
        except UploadFailed as exc:
            logger.warning("Upload of %s failed: %s", path.name, exc.message)
            raise
        except ValueError as exc:
            logger.warning("Upload of %s returned an unreadable response: %s", path.name, exc)
            raise UploadFailed("Storage service returned an invalid response") from exc
        finally:
            discard_local(path)

        duration = payload.get("duration")
        logger.info("Uploaded %s as %s", path.name, public_id)
        return UploadedMedia(
            url=url,
            public_id=public_id,
            resource_type=str(payload.get("resource_type") or resource_type),
            duration=float(duration) if duration is not None else None,
        )

    async def destroy(self, public_id: Optional[str], resource_type: str = "image") -> bool:
        """Best-effort removal of an uploaded asset; never raises."""
        if not public_id:
            return False
        data = self._signed({"public_id": public_id})
        try:
            async with self._client() as client:
                response = await client.post(self._endpoint(resource_type or "image", "destroy"), data=data)
        except httpx.HTTPError as exc:
            logger.warning("Could not destroy asset %s: %s", public_id, exc)
            return False
        if response.status_code >= 400:
            logger.warning("Could not destroy asset %s: status %s", public_id, response.status_code)
            return False
        return True


class UnconfiguredMediaGateway(MediaGateway):
    """Used while Cloudinary credentials are missing: uploads fail, destroys are skipped."""

    def __init__(self):
        super().__init__("", "", "")

    async def upload(self, local_path: str | Path, kind: str = "auto") -> UploadedMedia:
        discard_local(Path(local_path))
        raise UploadFailed("Media storage is not configured")

    async def destroy(self, public_id: Optional[str], resource_type: str = "image") -> bool:
        if public_id:
            logger.warning("Media storage is not configured; asset %s was left in place", public_id)
        return False


_gateway: Optional[MediaGateway] = None


def get_media_gateway() -> MediaGateway:
    """FastAPI dependency returning the process-wide gateway."""
    global _gateway
    if _gateway is None:
        try:
            cloud_name, api_key, api_secret = require_cloudinary_credentials()
        except ValueError:
            return UnconfiguredMediaGateway()
        _gateway = MediaGateway(
            cloud_name,
            api_key,
            api_secret,
            api_base=settings.CLOUDINARY_API_BASE,
            folder=settings.CLOUDINARY_FOLDER or None,
            timeout=settings.CLOUDINARY_TIMEOUT_SECONDS,
            chunk_size=settings.CLOUDINARY_CHUNK_SIZE_BYTES,
        )
    return _gateway
