"""Object store adapters: bucket/prefix addressed binary storage.

Two backends share one contract:

- ``S3ObjectStore`` talks to any S3 compatible endpoint (AWS, MinIO)
  through boto3.
- ``LocalObjectStore`` keeps objects as files under a directory, which is
  what a single-box install and the test suite use.

All I/O methods are coroutines; the blocking client calls are pushed to a
worker thread so the event loop keeps serving other requests.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import quote

from gallery.errors import NotFound, StoreUnavailable

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


@dataclass
class ListResult:
    keys: list[str] = field(default_factory=list)
    truncated: bool = False


def group_by_folder(keys: Iterable[str]) -> dict[str, list[str]]:
    """Group full keys by their first path segment, folders in first-seen order.

    Keys without a path separator belong to no folder and are dropped.
    """
    folders: dict[str, list[str]] = {}
    for key in keys:
        if "/" not in key:
            continue
        folder = key.split("/", 1)[0]
        if folder:
            folders.setdefault(folder, []).append(key)
    return folders


def top_level_folders(keys: Iterable[str]) -> list[str]:
    """Reduce full keys to their first path segment, first-seen order, no duplicates."""
    return list(group_by_folder(keys))


class ObjectStore(ABC):
    """Contract every object store backend fulfils."""

    name = "object store"

    def __init__(self, public_base_url: Optional[str] = None, proxy_path: str = "/api/images"):
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.proxy_path = proxy_path.rstrip("/")

    def resolve_url(self, key: str) -> str:
        """Build a fetchable URL for ``key``. Pure, no I/O."""
        quoted = quote(key, safe="/")
        if self.public_base_url:
            return f"{self.public_base_url}/{quoted}"
        return f"{self.proxy_path}/{quoted}"

    async def ensure_bucket(self) -> None:
        """Create the backing bucket/directory when missing."""

    @abstractmethod
    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` (overwriting) and return its URL."""

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Return the object's bytes. Raises NotFound if absent."""

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key is not an error."""

    @abstractmethod
    async def list_object_keys(self, prefix: str = "", limit: Optional[int] = None) -> ListResult:
        """List full keys under ``prefix``.

        ``truncated`` is only ever true when ``limit`` was given and reached.
        """

    @abstractmethod
    async def delete_keys(self, keys: list[str]) -> int:
        """Bulk delete, returns how many keys were removed."""

    async def delete_objects_by_prefix(self, prefix: str) -> int:
        listing = await self.list_object_keys(prefix)
        if not listing.keys:
            return 0
        removed = await self.delete_keys(listing.keys)
        logger.info("Deleted %d object(s) under prefix %s", removed, prefix)
        return removed

    async def list_top_level_folders(self, exclude: Iterable[str] = ()) -> list[str]:
        skip = set(exclude)
        listing = await self.list_object_keys("")
        return top_level_folders([k for k in listing.keys if k not in skip])


# --- S3 / MinIO ---


class S3ObjectStore(ObjectStore):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        client,
        public_base_url: Optional[str] = None,
        proxy_path: str = "/api/images",
    ):
        super().__init__(public_base_url, proxy_path)
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStore":
        import boto3
        from botocore.config import Config

        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(
                connect_timeout=settings.s3_timeout_seconds,
                read_timeout=settings.s3_timeout_seconds,
                retries={"max_attempts": 2},
                s3={"addressing_style": "path"},
            ),
        )
        return cls(
            bucket=settings.s3_bucket,
            client=client,
            public_base_url=settings.public_base_url,
            proxy_path=settings.image_proxy_path,
        )

    async def _call(self, func, *args, **kwargs):
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise NotFound("object", kwargs.get("Key", "")) from e
            raise StoreUnavailable(self.name, f"{code or 'ClientError'}: {e}") from e
        except BotoCoreError as e:
            raise StoreUnavailable(self.name, str(e)) from e

    async def ensure_bucket(self) -> None:
        try:
            await self._call(self._client.head_bucket, Bucket=self.bucket)
        except NotFound:
            await self._call(self._client.create_bucket, Bucket=self.bucket)
            logger.info("Bucket %s created", self.bucket)

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        await self._call(
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return self.resolve_url(key)

    def _get_sync(self, Key: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=Key)
        return response["Body"].read()

    async def get_object(self, key: str) -> bytes:
        return await self._call(self._get_sync, Key=key)

    async def delete_object(self, key: str) -> None:
        # S3 reports success for missing keys; MinIO may answer 404
        try:
            await self._call(self._client.delete_object, Bucket=self.bucket, Key=key)
        except NotFound:
            pass

    def _list_sync(self, prefix: str, limit: Optional[int]) -> ListResult:
        result = ListResult()
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                if limit is not None and len(result.keys) >= limit:
                    break
                result.keys.append(obj["Key"])
            if limit is not None and len(result.keys) >= limit:
                break
        result.truncated = limit is not None and len(result.keys) >= limit
        return result

    async def list_object_keys(self, prefix: str = "", limit: Optional[int] = None) -> ListResult:
        return await self._call(self._list_sync, prefix, limit)

    async def delete_keys(self, keys: list[str]) -> int:
        removed = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = await self._call(
                self._client.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": False},
            )
            errors = response.get("Errors", [])
            if errors:
                logger.warning("S3 refused to delete %d object(s): %s", len(errors), errors[:3])
            removed += len(response.get("Deleted", []))
        return removed


# --- Local filesystem ---


class LocalObjectStore(ObjectStore):
    """Objects as files under ``root``; keys are POSIX relative paths."""

    name = "local storage"

    def __init__(self, root: Path, public_base_url: Optional[str] = None, proxy_path: str = "/api/images"):
        super().__init__(public_base_url, proxy_path)
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise NotFound("object", key)
        return path

    async def _call(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except FileNotFoundError as e:
            raise NotFound("object", str(args[0]) if args else "") from e
        except OSError as e:
            raise StoreUnavailable(self.name, str(e)) from e

    async def ensure_bucket(self) -> None:
        await self._call(lambda: self.root.mkdir(parents=True, exist_ok=True))

    def _write(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        await self._call(self._write, key, data)
        return self.resolve_url(key)

    async def get_object(self, key: str) -> bytes:
        return await self._call(lambda k: self._path_for(k).read_bytes(), key)

    async def delete_object(self, key: str) -> None:
        try:
            await self._call(lambda k: self._path_for(k).unlink(missing_ok=True), key)
        except NotFound:
            pass

    def _list_sync(self, prefix: str, limit: Optional[int]) -> ListResult:
        result = ListResult()
        if not self.root.exists():
            raise FileNotFoundError(str(self.root))
        keys = sorted(
            p.relative_to(self.root).as_posix()
            for p in self.root.rglob("*")
            if p.is_file() and not p.name.startswith(".upload-")
        )
        for key in keys:
            if not key.startswith(prefix):
                continue
            if limit is not None and len(result.keys) >= limit:
                break
            result.keys.append(key)
        result.truncated = limit is not None and len(result.keys) >= limit
        return result

    async def list_object_keys(self, prefix: str = "", limit: Optional[int] = None) -> ListResult:
        try:
            return await self._call(self._list_sync, prefix, limit)
        except NotFound as e:
            raise StoreUnavailable(self.name, f"root {self.root} missing") from e

    def _delete_many(self, keys: list[str]) -> int:
        removed = 0
        for key in keys:
            path = self._path_for(key)
            if path.exists():
                path.unlink()
                removed += 1
        return removed

    async def delete_keys(self, keys: list[str]) -> int:
        return await self._call(self._delete_many, keys)


def build_object_store(settings) -> ObjectStore:
    """Pick the object store backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "s3":
        return S3ObjectStore.from_settings(settings)
    if settings.storage_backend == "local":
        return LocalObjectStore(
            settings.storage_dir,
            public_base_url=settings.public_base_url,
            proxy_path=settings.image_proxy_path,
        )
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
