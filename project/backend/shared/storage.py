"""
Asset storage.

AssetStore is the key-addressed blob store every stage writes to. The
Supabase Storage variant wraps the synchronous supabase client in an executor
and retries transient failures.
"""

import asyncio
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, Union

from supabase import create_client, Client
from shared.config import settings
from shared.errors import RetryableError, ConfigError
from shared.retry import retry_with_backoff
from shared.logging import get_logger

logger = get_logger("storage")

# Long-lived URL returned from put(); continuity frames use presigned_get() with a short TTL
STORED_URL_TTL = 7 * 24 * 3600


class AssetStore(ABC):
    """Key-addressed blob storage with presigned read URLs."""

    @abstractmethod
    async def put(self, key: str, local_path: Union[str, Path], content_type: str) -> str:
        """Upload a local file to key, overwriting any existing object. Returns a readable URL."""

    @abstractmethod
    async def presigned_get(self, key: str, ttl: int) -> str:
        """Return a time-limited read URL for key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""

    @abstractmethod
    async def download(self, key: str, dest_path: Union[str, Path]) -> Path:
        """Fetch key into a local file."""


def _signed_url_from(response: Any) -> str:
    if isinstance(response, dict):
        return response.get("signedURL") or response.get("signedUrl") or ""
    return str(response) if response else ""


class SupabaseAssetStore(AssetStore):
    """Supabase Storage backed AssetStore."""

    def __init__(self, bucket: Optional[str] = None, client: Optional[Client] = None):
        """
        Initialize storage client.

        Args:
            bucket: Storage bucket name (defaults to ASSETS_BUCKET)
            client: Pre-built supabase client, mainly for tests
        """
        self.bucket = bucket or settings.assets_bucket
        if client is not None:
            self.client = client
        else:
            try:
                self.client = create_client(settings.supabase_url, settings.supabase_service_key)
            except Exception as e:
                raise ConfigError(f"Failed to initialize storage client: {str(e)}") from e
        self.storage = self.client.storage

    async def _execute_sync(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def put(self, key: str, local_path: Union[str, Path], content_type: str) -> str:
        """
        Upload a file, overwriting the key if it already exists.

        Raises:
            RetryableError: If upload fails after retries
        """
        path = Path(local_path)
        try:
            data = await self._execute_sync(path.read_bytes)

            def _upload():
                return self.storage.from_(self.bucket).upload(
                    path=key,
                    file=data,
                    file_options={"content-type": content_type, "upsert": "true"}
                )

            await self._execute_sync(_upload)

            def _get_url():
                return self.storage.from_(self.bucket).create_signed_url(key, STORED_URL_TTL)

            url = _signed_url_from(await self._execute_sync(_get_url))

            logger.info(
                f"Uploaded {key}",
                extra={"bucket": self.bucket, "key": key, "size": len(data), "content_type": content_type}
            )
            return url

        except Exception as e:
            logger.error(
                f"Failed to upload {key}: {str(e)}",
                extra={"bucket": self.bucket, "key": key, "error": str(e)}
            )
            raise RetryableError(f"Failed to upload file: {str(e)}") from e

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def presigned_get(self, key: str, ttl: int) -> str:
        try:
            def _create_signed_url():
                return self.storage.from_(self.bucket).create_signed_url(key, ttl)

            url = _signed_url_from(await self._execute_sync(_create_signed_url))
            if not url:
                raise RetryableError(f"Empty signed URL for {key}")

            logger.debug(
                f"Generated signed URL for {key}",
                extra={"bucket": self.bucket, "key": key, "expires_in": ttl}
            )
            return url

        except RetryableError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to generate signed URL for {key}: {str(e)}",
                extra={"bucket": self.bucket, "key": key, "error": str(e)}
            )
            raise RetryableError(f"Failed to generate signed URL: {str(e)}") from e

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def delete(self, key: str) -> None:
        try:
            await self._execute_sync(lambda: self.storage.from_(self.bucket).remove([key]))
            logger.info(f"Deleted {key}", extra={"bucket": self.bucket, "key": key})
        except Exception as e:
            logger.error(
                f"Failed to delete {key}: {str(e)}",
                extra={"bucket": self.bucket, "key": key, "error": str(e)}
            )
            raise RetryableError(f"Failed to delete file: {str(e)}") from e

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def download(self, key: str, dest_path: Union[str, Path]) -> Path:
        dest = Path(dest_path)
        try:
            data = await self._execute_sync(lambda: self.storage.from_(self.bucket).download(key))
            await self._execute_sync(lambda: dest.write_bytes(data))
            logger.info(f"Downloaded {key}", extra={"bucket": self.bucket, "key": key})
            return dest
        except Exception as e:
            logger.error(
                f"Failed to download {key}: {str(e)}",
                extra={"bucket": self.bucket, "key": key, "error": str(e)}
            )
            raise RetryableError(f"Failed to download file: {str(e)}") from e


class LocalAssetStore(AssetStore):
    """Filesystem AssetStore rooted at a directory. URLs are file:// URIs."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.root / key

    async def put(self, key: str, local_path: Union[str, Path], content_type: str) -> str:
        dest = self.path_for(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        # Readers never see a partial object
        tmp = dest.with_name(dest.name + ".partial")
        shutil.copyfile(local_path, tmp)
        os.replace(tmp, dest)
        logger.debug(f"Stored {key}", extra={"key": key, "content_type": content_type})
        return dest.resolve().as_uri()

    async def presigned_get(self, key: str, ttl: int) -> str:
        path = self.path_for(key)
        if not path.exists():
            raise RetryableError(f"No object at {key}")
        return path.resolve().as_uri()

    async def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    async def download(self, key: str, dest_path: Union[str, Path]) -> Path:
        path = self.path_for(key)
        if not path.exists():
            raise RetryableError(f"No object at {key}")
        dest = Path(dest_path)
        shutil.copyfile(path, dest)
        return dest


_asset_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    """Return the process-wide Supabase asset store, creating it on first use."""
    global _asset_store
    if _asset_store is None:
        _asset_store = SupabaseAssetStore()
    return _asset_store
