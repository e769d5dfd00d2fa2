"""
Image CDN upload helper.

Validates an incoming image (declared type, size) and hands the bytes to
Cloudinary with a resize/quality transformation. Uploads are strict: anything
wrong is an UploadError and nothing gets written. Deletes are best-effort:
a blob that is already gone must never block removing the document that
pointed at it.
"""

import io
from dataclasses import dataclass
from typing import Optional

import cloudinary
import cloudinary.uploader

from config import Settings
from logger import get_logger
from schemas import UploadResult

_logger = get_logger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadProfile:
    folder: str
    max_width: int
    max_height: int
    max_size_bytes: int
    quality: str = "auto"

    @property
    def max_size_mb(self) -> int:
        return self.max_size_bytes // MB

    def transformation(self) -> list:
        return [
            {
                "width": self.max_width,
                "height": self.max_height,
                "crop": "limit",
                "quality": self.quality,
                "fetch_format": "auto",
            }
        ]


PRODUCT_IMAGES = UploadProfile("curavet/products", 800, 800, 5 * MB)
HERO_IMAGES = UploadProfile("curavet/hero", 1920, 1080, 10 * MB, quality="auto:best")


class UploadError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def validate_image(content_type: Optional[str], size: int, profile: UploadProfile) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise UploadError("File must be an image", 400)
    if size > profile.max_size_bytes:
        raise UploadError(f"Image must be less than {profile.max_size_mb}MB", 400)


class ImageStore:
    """Thin wrapper over cloudinary.uploader; tests pass their own uploader."""

    def __init__(self, settings: Settings, uploader=None):
        if uploader is None and settings.cloudinary_configured:
            cloudinary.config(
                cloud_name=settings.cloudinary_cloud_name,
                api_key=settings.cloudinary_api_key,
                api_secret=settings.cloudinary_api_secret,
                secure=True,
            )
            uploader = cloudinary.uploader
        self._uploader = uploader

    @property
    def configured(self) -> bool:
        return self._uploader is not None

    def upload_image(self, data: bytes, content_type: Optional[str], profile: UploadProfile) -> UploadResult:
        validate_image(content_type, len(data), profile)
        if self._uploader is None:
            raise UploadError("Image storage not configured", 500)
        try:
            result = self._uploader.upload(
                io.BytesIO(data),
                folder=profile.folder,
                resource_type="image",
                transformation=profile.transformation(),
            )
        except Exception as e:
            _logger.error(f"Image upload to {profile.folder} failed: {e}")
            raise UploadError("Failed to upload image", 500) from e
        _logger.info(f"Uploaded image {result['public_id']}")
        return UploadResult(
            url=result["secure_url"],
            public_id=result["public_id"],
            width=result.get("width"),
            height=result.get("height"),
        )

    def delete_image(self, public_id: str) -> None:
        if not public_id or self._uploader is None:
            return
        try:
            result = self._uploader.destroy(public_id)
        except Exception as e:
            _logger.warning(f"Image delete failed for {public_id} (may already be gone): {e}")
            return
        if result and result.get("result") != "ok":
            _logger.info(f"Image {public_id} not deleted: {result.get('result')}")
