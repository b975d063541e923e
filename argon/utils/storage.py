import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import quote, urljoin

from botocore.handlers import validate_bucket_name
from types_aiobotocore_s3.client import S3Client

log = logging.getLogger("argon.storage")


class Storage(Protocol):
    async def upload(self, key: str, content: bytes,
                     content_type: str = "application/octet-stream") -> str:
        ...

    async def get_url(self, key: str, expires_in: int = 3600) -> str:
        ...


class S3Storage:
    """S3-compatible object storage (AWS, R2, Ceph RGW)."""

    def __init__(self, client_factory: Callable, bucket: str):
        self.client_factory = client_factory
        self.bucket = bucket

    async def upload(self, key: str, content: bytes,
                     content_type: str = "application/octet-stream") -> str:
        async with self.client_factory() as client:
            client: S3Client

            # Disable bucket name validation to support Ceph RGW tenancy
            client.meta.events.unregister("before-parameter-build.s3", validate_bucket_name)

            await client.put_object(
                Bucket=self.bucket,
                Body=content,
                Key=key,
                ContentType=content_type,
            )

        log.debug("Uploaded %s (%d bytes)", key, len(content))
        return key

    async def get_url(self, key: str, expires_in: int = 3600) -> str:
        async with self.client_factory() as client:
            client: S3Client
            client.meta.events.unregister("before-parameter-build.s3", validate_bucket_name)

            return await client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )


class LocalStorage:
    """Stores objects below a directory; used for development and tests."""

    def __init__(self, base_path: str | Path, base_url: str = "/files/"):
        self.base_path = Path(base_path)
        self.base_url = base_url

    def path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if not path.is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    async def upload(self, key: str, content: bytes,
                     content_type: str = "application/octet-stream") -> str:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, content)
        return key

    async def get_url(self, key: str, expires_in: int = 3600) -> str:
        return urljoin(self.base_url, quote(key))


def get_storage(storage_type: str, *, s3: Callable | None = None, bucket: str | None = None,
                base_path: str | Path = "storage", base_url: str = "/files/") -> Storage:
    """Picks the storage backend named by ``STORAGE_TYPE`` ("s3" or "local")."""
    if storage_type == "local":
        return LocalStorage(base_path, base_url)
    if storage_type in ("s3", "r2"):
        if s3 is None or bucket is None:
            raise ValueError("S3 storage needs a client factory and a bucket name")
        return S3Storage(s3, bucket)
    raise ValueError(f"Unknown storage type: {storage_type}")


def sds_storage_key(tenant_id: str, chemical_id: str, timestamp: int | None = None) -> str:
    """Tenant-scoped key for a safety data sheet: ``sds/{tenant}/{chemical}-{ms}.pdf``."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return f"sds/{tenant_id}/{chemical_id}-{timestamp}.pdf"
