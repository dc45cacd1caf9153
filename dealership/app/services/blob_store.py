from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dealership.app.core.settings import settings


class BlobStoreError(Exception):
    """Raised when an object cannot be written to or removed from the store."""


class BlobStore:
    """Photo storage. Paths are bucket-relative, e.g. ``<vehicle_id>/<uuid>.jpg``."""

    bucket: str = settings.object_store_bucket
    public_base_url: str = settings.object_store_public_url

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    async def remove(self, paths: Iterable[str]) -> None:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{path.lstrip('/')}"

    def path_from_public_url(self, url: str) -> Optional[str]:
        match = re.search(rf"/{re.escape(self.bucket)}/(.+)$", url)
        if match:
            return match.group(1)
        prefix = self.public_base_url.rstrip("/") + "/"
        if url.startswith(prefix):
            return url[len(prefix):]
        return None

    @staticmethod
    def build_key(vehicle_id: str, filename: Optional[str] = None) -> str:
        suffix = Path(filename).suffix.lower() if filename else ""
        return f"{vehicle_id}/{uuid.uuid4()}{suffix}"


class LocalBlobStore(BlobStore):
    """Filesystem-backed blob store for development and tests."""

    def __init__(self, root: Optional[str | Path] = None, public_base_url: Optional[str] = None):
        self.root = Path(root or Path.cwd() / settings.object_store_root)
        self.root.mkdir(parents=True, exist_ok=True)
        if public_base_url:
            self.public_base_url = public_base_url

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = self.root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as exc:
            raise BlobStoreError(f"Upload failed for {path}: {exc}") from exc
        return path

    async def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            target = self.root / path
            try:
                await asyncio.to_thread(target.unlink, True)
            except OSError as exc:
                raise BlobStoreError(f"Delete failed for {path}: {exc}") from exc

    def exists(self, path: str) -> bool:
        return (self.root / path).exists()


class S3BlobStore(BlobStore):
    """S3-compatible bucket (MinIO, AWS, hosted storage with an S3 API)."""

    def __init__(self, client=None, bucket: Optional[str] = None, public_base_url: Optional[str] = None):
        self._client = client or boto3.client(
            "s3",
            endpoint_url=settings.object_store_url,
            aws_access_key_id=settings.object_store_access_key,
            aws_secret_access_key=settings.object_store_secret_key,
        )
        self.bucket = bucket or settings.object_store_bucket
        if public_base_url:
            self.public_base_url = public_base_url

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=path,
                Body=data,
                CacheControl="max-age=3600",
                **extra,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Upload failed for {path}: {exc}") from exc
        return path

    async def remove(self, paths: Iterable[str]) -> None:
        keys: List[str] = [p for p in paths if p]
        if not keys:
            return
        try:
            await asyncio.to_thread(
                self._client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in keys]},
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(f"Delete failed for {len(keys)} objects: {exc}") from exc


def build_blob_store() -> BlobStore:
    if settings.object_store_backend.lower() == "s3":
        return S3BlobStore()
    return LocalBlobStore()
