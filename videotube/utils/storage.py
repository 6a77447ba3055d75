import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from dataclasses import dataclass
from typing import Optional, Any, Callable
import uuid
import asyncio
from functools import partial
from loguru import logger
from videotube.config import settings
from videotube.errors import Unavailable


@dataclass(frozen=True)
class StoredMedia:
    url: str
    public_id: str
    duration: Optional[float] = None

    def as_ref(self) -> dict:
        return {"url": self.url, "public_id": self.public_id}


class MediaStorage:
    """Object storage collaborator: uploads and deletes binary media"""

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredMedia:
        raise NotImplementedError

    async def delete(self, public_id: str) -> bool:
        raise NotImplementedError


class R2Storage(MediaStorage):
    def __init__(self):
        self._s3_client = None
        self.bucket_name = settings.R2_BUCKET_NAME
        self.public_url = settings.R2_PUBLIC_URL

        # Create a semaphore to limit concurrent S3 operations
        self.s3_semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_S3_OPS)

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client(
                's3',
                endpoint_url=settings.R2_ENDPOINT_URL,
                aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                config=Config(signature_version='s3v4'),
                region_name='auto'
            )
        return self._s3_client

    async def _run_in_executor(self, func: Callable, *args, **kwargs) -> Any:
        """Run a blocking function in a thread pool executor with semaphore to limit concurrency"""
        async with self.s3_semaphore:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def upload(self, data: bytes, filename: str, content_type: str) -> StoredMedia:
        """
        Upload file to R2 and return its public URL and key
        """
        # Generate unique key
        key = f"{uuid.uuid4()}_{filename}"
        try:
            await self._run_in_executor(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"R2 upload error for {filename}: {e}")
            raise Unavailable("Failed to upload media") from e

        return StoredMedia(url=f"{self.public_url}/{key}", public_id=key)

    async def delete(self, public_id: str) -> bool:
        """
        Delete an object from R2 by key
        """
        try:
            await self._run_in_executor(
                self.s3_client.delete_object,
                Bucket=self.bucket_name,
                Key=public_id
            )
            return True
        except (ClientError, BotoCoreError) as e:
            # Don't raise error on delete failure
            logger.warning(f"R2 delete error for {public_id}: {e}")
            return False


@dataclass(frozen=True)
class MediaUpload:
    data: bytes
    filename: str
    content_type: str
