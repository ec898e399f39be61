"""
MinIO (S3-compatible) client for pin images.

Stores the image bytes as objects; the object key doubles as the pin's
image id. Reads hand out pre-signed URLs so clients fetch images directly
from MinIO without going through the API service.
"""
import logging
import mimetypes
import os
import uuid
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from pinboard.config import settings

logger = logging.getLogger(__name__)

_s3 = None


def init_image_store() -> None:
    """Create the S3 client and ensure the image bucket exists."""
    global _s3
    scheme = "https" if settings.minio_use_ssl else "http"
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def get_s3():
    if _s3 is None:
        raise RuntimeError("Image store not initialised — call init_image_store() at startup")
    return _s3


def _extension(filename: Optional[str], content_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext:
        return ext
    return mimetypes.guess_extension(content_type) or ""


def upload_image(data: bytes, content_type: str, filename: Optional[str] = None) -> str:
    """
    Upload image bytes to MinIO and return the object key.
    Key format: {image_folder}/{uuid}{ext}
    """
    key = f"{settings.image_folder}/{uuid.uuid4()}{_extension(filename, content_type)}"
    get_s3().put_object(
        Bucket=settings.minio_bucket,
        Key=key,
        Body=BytesIO(data),
        ContentType=content_type,
    )
    logger.debug("Uploaded image to MinIO: %s", key)
    return key


def delete_image(key: str) -> None:
    get_s3().delete_object(Bucket=settings.minio_bucket, Key=key)
    logger.debug("Deleted image from MinIO: %s", key)


def get_image_url(key: str) -> Optional[str]:
    """Generate a temporary pre-signed URL valid for `image_url_ttl` seconds."""
    if not key:
        return None
    try:
        return get_s3().generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.minio_bucket, "Key": key},
            ExpiresIn=settings.image_url_ttl,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.warning("Failed to generate presigned URL for %s: %s", key, exc)
        return None
