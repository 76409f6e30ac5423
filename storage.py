"""
Media storage on an S3-compatible object store.

Uploaded assets are addressed by their object key, stored on the video
document as ``public_id`` next to the public ``url``.
"""

import json
import mimetypes
import os
import subprocess
from typing import Any, Dict, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError
from bson import ObjectId
from loguru import logger

from config import StorageSettings, get_storage_settings


class MediaStorage:
    def __init__(self, settings: StorageSettings, client=None):
        self.settings = settings
        self.bucket = settings.bucket
        self.client = client or boto3.client(
            "s3",
            endpoint_url=settings.endpoint_url,
            aws_access_key_id=settings.access_key,
            aws_secret_access_key=settings.secret_key,
            region_name=settings.region,
        )

    def probe_duration(self, local_path: str) -> float:
        """Duration in seconds reported by ffprobe, 0.0 when it cannot tell."""
        cmd = [
            self.settings.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            local_path,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            logger.warning(f"ffprobe unavailable: {e}")
            return 0.0
        if result.returncode != 0:
            logger.warning(f"ffprobe failed for {local_path}: {result.stderr.strip()}")
            return 0.0
        try:
            return float(json.loads(result.stdout).get("format", {}).get("duration", 0))
        except (ValueError, TypeError):
            return 0.0

    def upload(self, local_path: Optional[str], probe: bool = False) -> Optional[Dict[str, Any]]:
        """Upload a staged file and remove it locally afterwards.

        Returns ``{"url", "public_id", "duration"}`` or None when nothing was
        uploaded. ``duration`` is only probed when ``probe`` is set, whatever
        the file's extension says.
        """
        if not local_path:
            return None
        try:
            content_type = mimetypes.guess_type(local_path)[0] or "application/octet-stream"
            kind = "video" if probe else content_type.split("/")[0]
            duration = self.probe_duration(local_path) if probe else None

            ext = os.path.splitext(local_path)[1]
            key = f"{kind}/{ObjectId()}{ext}"
            self.client.upload_file(local_path, self.bucket, key, ExtraArgs={"ContentType": content_type})
            logger.info(f"Uploaded {local_path} to s3://{self.bucket}/{key}")
            return {
                "url": f"{self.settings.base_url}/{key}",
                "public_id": key,
                "duration": duration,
            }
        except (S3UploadFailedError, BotoCoreError, ClientError, OSError):
            logger.exception(f"Upload of {local_path} failed")
            return None
        finally:
            if os.path.exists(local_path):
                os.remove(local_path)

    def delete(self, public_id: Optional[str]) -> bool:
        if not public_id:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=public_id)
        except (BotoCoreError, ClientError):
            logger.exception(f"Delete of s3://{self.bucket}/{public_id} failed")
            return False
        logger.info(f"Deleted s3://{self.bucket}/{public_id}")
        return True


_storage: Optional[MediaStorage] = None


def get_storage() -> MediaStorage:
    global _storage
    if _storage is None:
        _storage = MediaStorage(get_storage_settings())
    return _storage
