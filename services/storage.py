"""
Complaint photo storage.

Photos go to S3 when the AWS settings are all present and to the local
uploads directory otherwise. Validation happens before anything is written.
"""

import logging
import os
import random
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
LOCAL_URL_PREFIX = "/api/complaints/uploads/"

MAX_PHOTOS = 5
MAX_PHOTO_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}

AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_S3_BUCKET_NAME = os.getenv("AWS_S3_BUCKET_NAME")
AWS_REGION = os.getenv("AWS_REGION")


class StorageError(Exception):
    """Raised when a photo cannot be persisted."""


def s3_configured() -> bool:
    return all(
        (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_S3_BUCKET_NAME, AWS_REGION)
    )


def _s3_client():
    return boto3.client(
        "s3",
        region_name=AWS_REGION,
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
    )


def complaint_upload_dir() -> Path:
    return Path(UPLOAD_DIR) / "complaints"


def _unique_name(prefix: str, extension: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"


def _reject(detail: str):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def read_photos(files: Sequence[UploadFile]) -> List[Dict]:
    """Validate uploads and read them into memory.

    Returns dicts with filename, extension, content_type and data.
    """
    files = [f for f in files or [] if f is not None and f.filename]
    if len(files) > MAX_PHOTOS:
        _reject(f"You can upload at most {MAX_PHOTOS} photos")

    photos = []
    for upload in files:
        extension = os.path.splitext(upload.filename)[1].lower()
        content_type = (upload.content_type or "").lower()
        if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
            _reject("Only image files are allowed!")

        data = upload.file.read(MAX_PHOTO_BYTES + 1)
        if len(data) > MAX_PHOTO_BYTES:
            _reject("Each photo must be 10MB or smaller")
        if not data:
            _reject(f"Uploaded file {upload.filename} is empty")

        photos.append(
            {
                "filename": upload.filename,
                "extension": extension,
                "content_type": content_type,
                "data": data,
            }
        )
    return photos


def save_photos(photos: Sequence[Dict], user_id: int) -> List[str]:
    if not photos:
        return []
    if s3_configured():
        return [_save_to_s3(photo, user_id) for photo in photos]
    return [_save_locally(photo) for photo in photos]


def _save_locally(photo: Dict) -> str:
    target_dir = complaint_upload_dir()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        filename = _unique_name("complaint", photo["extension"])
        (target_dir / filename).write_bytes(photo["data"])
    except OSError as exc:
        raise StorageError(f"Failed to store {photo['filename']}: {exc}") from exc

    logger.info("Stored complaint photo locally as %s", filename)
    return f"{LOCAL_URL_PREFIX}{filename}"


def _save_to_s3(photo: Dict, user_id: int) -> str:
    key = f"complaints/{_unique_name('upload', photo['extension'])}"
    try:
        _s3_client().put_object(
            Bucket=AWS_S3_BUCKET_NAME,
            Key=key,
            Body=photo["data"],
            ContentType=photo["content_type"],
            Metadata={
                "fieldName": "photos",
                "userId": str(user_id),
                "uploadTime": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            },
        )
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to upload {photo['filename']} to S3: {exc}") from exc

    url = f"https://{AWS_S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"
    logger.info("Uploaded complaint photo to %s", url)
    return url


def _s3_key(reference: str) -> Optional[str]:
    if reference.startswith(LOCAL_URL_PREFIX):
        return None
    return urlparse(reference).path.lstrip("/") or None


def tag_photos(references: Sequence[str], metadata: Dict[str, str]) -> int:
    """Attach metadata to stored S3 objects. Failures are logged and skipped.

    Returns how many objects were tagged.
    """
    if not s3_configured():
        return 0

    client = _s3_client()
    tagged = 0
    for reference in references:
        key = _s3_key(reference)
        if not key:
            continue
        try:
            client.copy_object(
                Bucket=AWS_S3_BUCKET_NAME,
                Key=key,
                CopySource={"Bucket": AWS_S3_BUCKET_NAME, "Key": key},
                Metadata=metadata,
                MetadataDirective="REPLACE",
            )
            tagged += 1
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Failed to update S3 metadata for %s: %s", reference, exc)
    return tagged


def discard_photos(references: Sequence[str]) -> None:
    """Remove stored photos of a deleted complaint. Failures are logged."""
    for reference in references:
        if reference.startswith(LOCAL_URL_PREFIX):
            path = complaint_upload_dir() / reference[len(LOCAL_URL_PREFIX):]
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not delete %s: %s", path, exc)
            continue

        key = _s3_key(reference)
        if not key or not s3_configured():
            continue
        try:
            _s3_client().delete_object(Bucket=AWS_S3_BUCKET_NAME, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Could not delete S3 object %s: %s", key, exc)


def local_photo_path(filename: str) -> Optional[Path]:
    """Resolve a served filename inside the uploads directory, or None."""
    if not filename or os.path.basename(filename) != filename:
        return None
    path = complaint_upload_dir() / filename
    return path if path.is_file() else None
