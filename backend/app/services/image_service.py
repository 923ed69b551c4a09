"""
RouteLog Backend - Cloudinary Image Service
=============================================

What:  Uploads a base64-encoded route photo to Cloudinary and returns its
       hosted https URL.
How:   cloudinary.uploader.upload() with the image sent as a data URI
       (`data:image/jpeg;base64,...`). The SDK call is blocking, so it runs
       in Starlette's threadpool; the SDK builds and signs the request.
Who:   Called by RouteService when a submission carries `imageBase64`.

Failure handling:
    Every failure (undecodable payload, missing credentials, provider error,
    network error) raises ImageUploadError. RouteService logs it and stores
    the route without a photo.
"""

import base64
import binascii
import logging
import time
import uuid
from typing import Any, Dict, Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.exceptions import ImageUploadError
from app.services.provider_base import ImageHost

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def to_data_uri(image_base64: str) -> str:
    """Wraps raw base64 in a JPEG data URI; data URIs are passed through."""
    if image_base64.startswith("data:"):
        return image_base64
    return f"{DATA_URI_PREFIX}{image_base64}"


class CloudinaryImageService(ImageHost):
    """
    Cloudinary upload client.

    Credentials default to Settings and are passed to the SDK on every call,
    so several instances with different accounts can coexist.
    """

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ):
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key if api_key is not None else settings.cloudinary_api_key
        self.api_secret = api_secret if api_secret is not None else settings.cloudinary_api_secret
        self.timeout = settings.image_upload_timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _upload_options(self) -> Dict[str, Any]:
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "secure": True,
            "resource_type": "image",
            "timeout": self.timeout,
        }

    def _validate_payload(self, data_uri: str) -> None:
        """Rejects payloads that are not decodable base64 before any network call."""
        _, _, encoded = data_uri.partition(",")
        try:
            decoded = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageUploadError(
                message="Image payload is not valid base64",
                context={"error_type": type(e).__name__},
            ) from e
        if not decoded:
            raise ImageUploadError(message="Image payload is empty")

    async def upload_base64(self, image_base64: str) -> str:
        call_id = str(uuid.uuid4())[:8]

        if not self.is_configured():
            raise ImageUploadError(
                message="Image hosting credentials are not configured",
                context={"call_id": call_id},
            )

        data_uri = to_data_uri(image_base64)
        self._validate_payload(data_uri)

        start_time = time.perf_counter()
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload, data_uri, **self._upload_options()
            )
        except CloudinaryError as e:
            raise ImageUploadError(
                message=str(e) or "Image host rejected the upload",
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        result = result or {}

        if "error" in result:
            error = result.get("error") or {}
            raise ImageUploadError(
                message=error.get("message", "Image host rejected the upload"),
                context={"call_id": call_id},
            )

        secure_url = result.get("secure_url")
        if not secure_url:
            raise ImageUploadError(
                message="Image host response carried no secure_url",
                context={"call_id": call_id},
            )

        logger.info(
            "[%s] Image uploaded in %.0fms: %s",
            call_id, duration_ms, result.get("public_id", "unknown"),
        )
        return secure_url


# ── Singleton Instance ────────────────────────────────────────────────────
image_service = CloudinaryImageService()
