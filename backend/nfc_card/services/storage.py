from __future__ import annotations

import logging
import os
from typing import Tuple

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nfc_card.core.config import settings
from nfc_card.core.errors import BackendUnavailable, CardError, ValidationError
from nfc_card.core.realtime import ChangeHub
from nfc_card.models import Profile
from nfc_card.services.profiles import update_profile
from nfc_card.utils.file_store import local_object_path, new_object_key


logger = logging.getLogger(__name__)

# Accepted content type -> stored extension
IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}
ALLOWED_IMAGE_TYPES = tuple(IMAGE_EXTENSIONS)

# Profile column -> storage folder
IMAGE_FOLDERS = {
    "avatar": "images",
    "background_image": "background_images",
}


class LocalStorage:
    def __init__(self, bucket: str | None = None) -> None:
        self.bucket = bucket or settings.storage_bucket

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = local_object_path(self.bucket, key)
        if os.path.exists(path):
            raise BackendUnavailable(f"Object already exists: {key}")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as handle:
            handle.write(data)
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{settings.storage_public_base_url.rstrip('/')}/{self.bucket}/{key}"

    def remove(self, key: str) -> None:
        path = local_object_path(self.bucket, key)
        if os.path.exists(path):
            os.remove(path)


class SupabaseStorage:
    def __init__(self, bucket: str | None = None) -> None:
        self.bucket = bucket or settings.storage_bucket
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise BackendUnavailable("Supabase storage is not configured.")
        self.base_url = f"{settings.supabase_url.rstrip('/')}/storage/v1"

    def _headers(self) -> dict:
        key = settings.supabase_service_role_key or ""
        return {"Authorization": f"Bearer {key}", "apikey": key}

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        headers = {
            **self._headers(),
            "Content-Type": content_type,
            "cache-control": "3600",
            "x-upsert": "false",
        }
        try:
            with httpx.Client(timeout=settings.storage_timeout_seconds) as client:
                resp = client.post(f"{self.base_url}/object/{self.bucket}/{key}", headers=headers, content=data)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Error uploading file: {exc}") from exc
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{key}"

    def remove(self, key: str) -> None:
        try:
            with httpx.Client(timeout=settings.storage_timeout_seconds) as client:
                resp = client.request(
                    "DELETE",
                    f"{self.base_url}/object/{self.bucket}",
                    headers=self._headers(),
                    json={"prefixes": [key]},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Error removing file: {exc}") from exc


def get_storage():
    if settings.storage_backend == "supabase":
        return SupabaseStorage()
    return LocalStorage()


def validate_image(content_type: str | None, size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"Please upload a valid image file ({', '.join(ALLOWED_IMAGE_TYPES)})"
        )
    if size <= 0:
        raise ValidationError("Uploaded file is empty.")
    if size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ValidationError(f"Image size must be less than {limit_mb}MB")


def upload_profile_image(
    db: Session,
    profile_id: str,
    field: str,
    filename: str | None,
    content_type: str | None,
    data: bytes,
    storage=None,
    hub: ChangeHub | None = None,
) -> Tuple[str, Profile]:
    """Store an avatar/background image and point the profile at it.

    When the profile write fails after the upload succeeded, the uploaded
    object is removed again before the error propagates.
    """
    if field not in IMAGE_FOLDERS:
        raise ValidationError(f"Unsupported image field: {field}")
    validate_image(content_type, len(data))
    storage = storage or get_storage()

    key = new_object_key(IMAGE_FOLDERS[field], filename, extension=IMAGE_EXTENSIONS[content_type])
    url = storage.upload(key, data, content_type)
    logger.info("Uploaded %s for profile %s to %s", field, profile_id, key)
    try:
        profile = update_profile(db, profile_id, {field: url}, hub=hub)
    except (CardError, SQLAlchemyError):
        try:
            storage.remove(key)
        except (CardError, OSError) as cleanup_exc:
            logger.error("Could not remove orphaned upload %s: %s", key, cleanup_exc)
        raise
    return url, profile
