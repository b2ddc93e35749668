"""
Storage Service
Uploads result images - supports Supabase Storage, Google Cloud Storage, S3,
and the local filesystem.
"""

import asyncio
import logging
import secrets
import time
from pathlib import Path
from typing import Optional

from app.core.config import settings
from app.core.exceptions import StorageUploadError

logger = logging.getLogger(__name__)

BACKENDS = ("supabase", "gcs", "s3", "local")


def build_result_path(user_id: str, extension: str = "png") -> str:
    """Object path for a job's canonical image: {user}/results/result-{ms}-{rand}.{ext}"""
    timestamp = int(time.time() * 1000)
    random_str = secrets.token_hex(4)
    return f"{user_id}/results/result-{timestamp}-{random_str}.{extension or 'png'}"


class StorageService:
    """Service for object storage operations."""

    def __init__(self, backend: Optional[str] = None, bucket: Optional[str] = None):
        self.backend = (backend or settings.STORAGE_BACKEND).lower()
        self.bucket_name = bucket or settings.STORAGE_BUCKET
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown storage backend: {self.backend}")

        if self.backend == "local":
            self.base_path = Path(settings.LOCAL_STORAGE_PATH)
            self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using {self.backend} storage (bucket: {self.bucket_name})")

    # Clients are created on first upload so that a misconfigured backend only
    # degrades uploads rather than failing startup.
    def _supabase_bucket(self):
        from app.core.supabase import get_supabase
        return get_supabase().storage.from_(self.bucket_name)

    def _gcs_bucket(self):
        from google.cloud import storage
        client = storage.Client(project=settings.GCP_PROJECT_ID or None)
        return client.bucket(self.bucket_name)

    def _s3_client(self):
        import boto3
        from botocore.config import Config
        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT or None,
            aws_access_key_id=settings.S3_ACCESS_KEY or None,
            aws_secret_access_key=settings.S3_SECRET_KEY or None,
            region_name=settings.S3_REGION,
            config=Config(signature_version="s3v4")
        )

    async def upload_bytes(self, data: bytes, path: str, content_type: str = "image/png") -> str:
        """
        Upload bytes and return a publicly resolvable URL.

        Raises:
            StorageUploadError: the backend rejected or failed the write
        """
        upload = {
            "supabase": self._upload_supabase,
            "gcs": self._upload_gcs,
            "s3": self._upload_s3,
            "local": self._upload_local,
        }[self.backend]
        try:
            url = await asyncio.to_thread(upload, data, path, content_type)
        except Exception as e:
            raise StorageUploadError(f"Upload to {self.backend} failed for {path}: {e}", cause=e) from e

        logger.info(f"Uploaded {len(data)} bytes to {path}")
        return url

    def _upload_supabase(self, data: bytes, path: str, content_type: str) -> str:
        bucket = self._supabase_bucket()
        bucket.upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "cache-control": "3600", "upsert": "false"},
        )
        return bucket.get_public_url(path)

    def _upload_gcs(self, data: bytes, path: str, content_type: str) -> str:
        blob = self._gcs_bucket().blob(path)
        blob.upload_from_string(data, content_type=content_type)
        return f"https://storage.googleapis.com/{self.bucket_name}/{path}"

    def _upload_s3(self, data: bytes, path: str, content_type: str) -> str:
        self._s3_client().put_object(
            Bucket=self.bucket_name,
            Key=path,
            Body=data,
            ContentType=content_type
        )
        if settings.S3_ENDPOINT:
            return f"{settings.S3_ENDPOINT.rstrip('/')}/{self.bucket_name}/{path}"
        return f"https://{self.bucket_name}.s3.{settings.S3_REGION}.amazonaws.com/{path}"

    def _upload_local(self, data: bytes, path: str, content_type: str) -> str:
        file_path = self.base_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "wb") as f:
            f.write(data)

        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        """Public URL for a locally stored file, served by the /files route."""
        return f"{settings.API_BASE_URL.rstrip('/')}/files/{path}"

    async def get_file(self, path: str) -> bytes:
        """Read a locally stored file."""
        if self.backend != "local":
            raise FileNotFoundError(path)
        file_path = (self.base_path / path).resolve()
        if self.base_path.resolve() not in file_path.parents:
            raise FileNotFoundError(path)
        return await asyncio.to_thread(file_path.read_bytes)
