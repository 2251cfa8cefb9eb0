"""
Session recording storage on Cloudflare R2 (S3-compatible).
"""
import asyncio
from io import BytesIO
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError

from booking_engine.config import settings


def _r2_client():
    if not settings.R2_ACCOUNT_ID or not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
        raise RuntimeError(
            "R2 storage not configured: set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY"
        )
    return boto3.client(
        service_name="s3",
        endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name="auto",
        config=boto3.session.Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


def object_key(key_prefix: str, filename: str) -> str:
    """Random object name under `key_prefix`, keeping the upload's file extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    name = f"{uuid4().hex}.{ext}" if ext else uuid4().hex
    return f"{key_prefix.strip('/')}/{name}"


def public_url(key: str) -> str:
    """Public URL for an object key."""
    base = settings.STORAGE_PUBLIC_BASE_URL.rstrip("/")
    key = key.lstrip("/")
    return f"{base}/{key}" if key else base


async def upload(
    key_prefix: str,
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
) -> str:
    """
    Upload a recording and return its public URL.
    key_prefix: e.g. "recordings/{lesson_id}"
    """
    key = object_key(key_prefix, filename)
    client = _r2_client()
    extra = {"ContentType": content_type} if content_type else {}

    def _put():
        try:
            client.upload_fileobj(BytesIO(content), settings.R2_BUCKET_NAME, key, ExtraArgs=extra)
        except ClientError as e:
            raise RuntimeError(f"Recording upload failed: {e}") from e

    await asyncio.to_thread(_put)
    return public_url(key)
