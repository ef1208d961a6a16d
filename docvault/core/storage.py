"""
Blob storage for uploaded bytes. S3 OR local filesystem. Controlled by FF_USE_S3 flag.

Stored names are generated here and never derived from user input beyond a
sanitized extension.
"""

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from .config import get_settings
from .errors import NotFound, StorageFailure
from .flags import get_flags

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,10}$")
_REF_RE = re.compile(r"^[0-9a-f]{32}(\.[a-z0-9]{1,10})?$")


def safe_extension(filename: Optional[str]) -> str:
    """Recover a file extension from a user-supplied name, or ''."""
    if not filename:
        return ""
    ext = Path(filename.replace("\\", "/")).suffix.lower()
    return ext if _EXTENSION_RE.match(ext) else ""


def new_ref(extension: str = "") -> str:
    ext = extension.lower() if _EXTENSION_RE.match(extension.lower()) else ""
    return f"{uuid.uuid4().hex}{ext}"


def _check_ref(ref: str) -> str:
    if not ref or not _REF_RE.match(ref):
        raise NotFound(f"Stored file not found: {ref!r}")
    return ref


class StorageBackend(ABC):
    @abstractmethod
    async def store(self, file_bytes: bytes, extension: str = "") -> str:
        """Persist bytes under a freshly generated name. Returns the ref."""
        ...

    @abstractmethod
    async def read(self, ref: str) -> bytes:
        """Return the stored bytes. NotFound if the ref is absent."""
        ...

    @abstractmethod
    async def delete(self, ref: str) -> bool:
        """Remove the stored bytes. NotFound if the ref is absent."""
        ...


class S3Storage(StorageBackend):
    def __init__(self, bucket: Optional[str] = None, prefix: Optional[str] = None):
        settings = get_settings()
        self.bucket = bucket or settings.s3_bucket_name
        self.prefix = (settings.s3_prefix if prefix is None else prefix).strip("/")
        self._client = None

    def _get_client(self):
        if self._client is None:
            import boto3

            settings = get_settings()
            kwargs = {"region_name": settings.aws_region}
            if settings.aws_access_key_id:
                kwargs["aws_access_key_id"] = settings.aws_access_key_id
                kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def _key(self, ref: str) -> str:
        return f"{self.prefix}/{ref}" if self.prefix else ref

    async def store(self, file_bytes: bytes, extension: str = "") -> str:
        ref = new_ref(extension)
        key = self._key(ref)
        try:
            await asyncio.to_thread(
                self._get_client().put_object,
                Bucket=self.bucket,
                Key=key,
                Body=file_bytes,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageFailure(f"Could not store file {ref}: {e}") from e

        logger.info("Uploaded to S3: %s", key)
        return ref

    async def read(self, ref: str) -> bytes:
        key = self._key(_check_ref(ref))
        try:
            resp = await asyncio.to_thread(
                self._get_client().get_object, Bucket=self.bucket, Key=key
            )
            return await asyncio.to_thread(resp["Body"].read)
        except ClientError as e:
            if _is_missing(e):
                raise NotFound(f"Stored file not found: {ref}") from e
            raise StorageFailure(f"Could not read file {ref}: {e}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Could not read file {ref}: {e}") from e

    async def delete(self, ref: str) -> bool:
        key = self._key(_check_ref(ref))
        client = self._get_client()
        try:
            # delete_object succeeds for absent keys, so probe first
            await asyncio.to_thread(client.head_object, Bucket=self.bucket, Key=key)
            await asyncio.to_thread(client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise NotFound(f"Stored file not found: {ref}") from e
            raise StorageFailure(f"Could not delete file {ref}: {e}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Could not delete file {ref}: {e}") from e

        logger.info("Deleted from S3: %s", key)
        return True


class LocalStorage(StorageBackend):
    def __init__(self, base_path: Union[str, Path, None] = None):
        self.base_path = Path(base_path or get_settings().storage_path)

    def _path(self, ref: str) -> Path:
        return self.base_path / _check_ref(ref)

    async def store(self, file_bytes: bytes, extension: str = "") -> str:
        ref = new_ref(extension)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            (self.base_path / ref).write_bytes(file_bytes)
        except OSError as e:
            raise StorageFailure(f"Could not store file {ref}: {e}") from e

        logger.info("Saved locally: %s", ref)
        return ref

    async def read(self, ref: str) -> bytes:
        path = self._path(ref)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound(f"Stored file not found: {ref}") from e
        except OSError as e:
            raise StorageFailure(f"Could not read file {ref}: {e}") from e

    async def delete(self, ref: str) -> bool:
        path = self._path(ref)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFound(f"Stored file not found: {ref}") from e
        except OSError as e:
            raise StorageFailure(f"Could not delete file {ref}: {e}") from e

        logger.info("Deleted locally: %s", ref)
        return True


def _is_missing(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in ("404", "NoSuchKey", "NotFound")


_storage: Optional[StorageBackend] = None


def get_storage() -> StorageBackend:
    """Return the active storage backend based on feature flags."""
    global _storage
    if _storage is None:
        _storage = S3Storage() if get_flags().use_s3 else LocalStorage()
    return _storage
