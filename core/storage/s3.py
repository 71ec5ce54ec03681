"""S3 storage for candidate business case videos."""

import aioboto3
from typing import Optional
from urllib.parse import urlparse
import logging

from core.config import settings

logger = logging.getLogger(__name__)


def _get_credentials() -> dict:
    """Lazily load AWS credentials to avoid import-time failures."""
    credentials = {"region_name": settings.aws_region}

    # Fall back to the default boto credential chain (instance role, profile)
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        credentials["aws_access_key_id"] = settings.aws_access_key_id
        credentials["aws_secret_access_key"] = settings.aws_secret_access_key

    return credentials


def video_key(application_id: str, question_id: str, extension: str = "webm") -> str:
    """Storage key for one answer video: ``{application_id}/{question_id}.{ext}``."""
    return f"{application_id}/{question_id}.{extension}"


VIDEO_EXTENSIONS = {
    "video/webm": "webm",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
}


def extension_for(content_type: Optional[str]) -> str:
    """File extension for a video MIME type; codecs parameters are ignored."""
    base = (content_type or "").split(";")[0].strip().lower()
    return VIDEO_EXTENSIONS.get(base, "webm")


def content_type_for(key: str) -> str:
    """Inverse of ``extension_for`` based on the key suffix."""
    extension = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    for content_type, known in VIDEO_EXTENSIONS.items():
        if known == extension:
            return content_type
    return "video/webm"


class S3Storage:
    """
    Answer videos in the BCQ bucket.

    Objects are addressed by ``video_key``; callers persist the key and the
    unsigned ``object_url``, and playback always goes through
    ``get_presigned_url``.
    """

    def __init__(self, bucket_name: Optional[str] = None):
        self.bucket_name = bucket_name or settings.video_bucket
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and BCQ_VIDEO_BUCKET not set")

        self.credentials = _get_credentials()
        self.session = aioboto3.Session(**self.credentials)

    def _client(self):
        return self.session.client("s3")

    def object_url(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.credentials['region_name']}.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> str:
        """Recover the object key from a URL produced by ``object_url``."""
        return urlparse(url).path.lstrip("/")

    async def upload(
        self,
        file_data: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Store a video, replacing whatever is at ``key``.

        Re-recording a question writes to the same key, so the newest take
        always wins.

        Returns:
            Unsigned URL of the stored object
        """
        put_args = {"Bucket": self.bucket_name, "Key": key, "Body": file_data}
        if content_type:
            put_args["ContentType"] = content_type
        if metadata:
            put_args["Metadata"] = metadata

        async with self._client() as client:
            await client.put_object(**put_args)

        logger.info(f"Stored video {key} ({len(file_data)} bytes) in {self.bucket_name}")
        return self.object_url(key)

    async def download(self, key: str) -> bytes:
        async with self._client() as client:
            obj = await client.get_object(Bucket=self.bucket_name, Key=key)
            async with obj["Body"] as stream:
                data = await stream.read()

        logger.info(f"Fetched video {key} ({len(data)} bytes) from {self.bucket_name}")
        return data

    async def delete(self, key: str) -> bool:
        async with self._client() as client:
            await client.delete_object(Bucket=self.bucket_name, Key=key)

        logger.info(f"Deleted video {key} from {self.bucket_name}")
        return True

    async def get_presigned_url(
        self,
        key: str,
        expiration: int = 3600,
        operation: str = "get_object",
    ) -> str:
        """
        Signed URL for one object.

        Args:
            key: Object key
            expiration: Lifetime in seconds
            operation: ``get_object`` for playback
        """
        async with self._client() as client:
            return await client.generate_presigned_url(
                operation,
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expiration,
            )
