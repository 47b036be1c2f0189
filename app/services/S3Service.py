"""S3 Service for hosting avatar images on AWS S3."""

import base64
import binascii
import io
import logging
import uuid
from typing import Optional

import boto3
from PIL import Image, UnidentifiedImageError
from slugify import slugify
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.exceptions import CollaboratorError, ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def decode_image_payload(payload: str) -> bytes:
    """Accept raw base64 or a data URL (data:image/png;base64,....)."""
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("Avatar must be a base64 encoded image")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationFailed("Avatar image is too large")
    return data


class S3Service:
    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY or None,
            )
        return self._client

    async def upload_image(self, payload: str, folder: str, owner: Optional[str] = None) -> dict:
        data = decode_image_payload(payload)
        try:
            with Image.open(io.BytesIO(data)) as image:
                image_format = image.format
                width, height = image.size
        except UnidentifiedImageError:
            raise ValidationFailed("Avatar must be a valid image")

        if image_format not in ALLOWED_IMAGE_FORMATS:
            raise ValidationFailed(f"Unsupported image format: {image_format}")

        owner_segment = slugify(owner) if owner else "anonymous"
        key = f"{folder}/{owner_segment}/{uuid.uuid4()}.{ALLOWED_IMAGE_FORMATS[image_format]}"

        try:
            await run_in_threadpool(
                self.client.upload_fileobj,
                io.BytesIO(data),
                self.settings.AWS_S3_BUCKET,
                key,
                ExtraArgs={"ContentType": Image.MIME.get(image_format, "application/octet-stream")},
            )
        except Exception as e:
            logger.error(f"❌ Error uploading {key} to S3: {e}")
            raise CollaboratorError("Failed to upload image")

        logger.info(f"✅ Uploaded image {key} ({width}x{height})")
        return {
            "url": f"{self.settings.AWS_S3_BASE_URL}{key}",
            "publicId": key,
            "width": width,
            "height": height,
        }

    async def delete_image(self, public_id: str) -> bool:
        if not public_id:
            return False
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.settings.AWS_S3_BUCKET, Key=public_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not delete {public_id} from S3: {e}")
            return False
        return True
