"""Cloudinary-backed storage for property images."""

from __future__ import annotations

import hashlib
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from loguru import logger
from prometheus_client import Counter

from utils.error_handling import FieldError, RemoteMediaError, ValidationError

MEDIA_REQUESTS = Counter(
    "media_store_requests_total",
    "Requests issued to the remote media store",
    labelnames=["operation", "status"],
)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_FORMATS = ("jpg", "jpeg", "png", "webp")

DEFAULT_URL_OPTIONS: Dict[str, Any] = {
    "width": 800,
    "height": 600,
    "crop": "fill",
    "quality": "auto",
    "fetch_format": "auto",
}

VARIANT_SIZES = {
    "thumbnail": (300, 200),
    "medium": (600, 400),
    "large": (1200, 800),
}

_TRANSFORMATION_KEYS = {
    "width": "w",
    "height": "h",
    "crop": "c",
    "quality": "q",
    "fetch_format": "f",
    "gravity": "g",
}
_VERSION_PREFIX = re.compile(r"^v\d+/")


@dataclass(slots=True)
class MediaStoreConfig:
    """Runtime configuration for the Cloudinary account."""

    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    folder: str = "estate-manager/properties"
    upload_transformation: str = "c_fill,h_800,q_auto,w_1200/f_auto"
    timeout_seconds: float = 30.0
    api_base_url: str = "https://api.cloudinary.com/v1_1"
    delivery_base_url: str = "https://res.cloudinary.com"

    @classmethod
    def from_env(cls) -> "MediaStoreConfig":
        try:
            timeout = float(os.getenv("CLOUDINARY_TIMEOUT_SECONDS", "30"))
        except ValueError:
            timeout = 30.0
        return cls(
            cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
            api_key=os.getenv("CLOUDINARY_API_KEY", ""),
            api_secret=os.getenv("CLOUDINARY_API_SECRET", ""),
            folder=os.getenv("CLOUDINARY_FOLDER", "estate-manager/properties"),
            timeout_seconds=timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


@dataclass(slots=True)
class UploadedImage:
    public_id: str
    url: str


@dataclass(slots=True)
class ImageUpload:
    """An image file received from a client, not yet stored remotely."""

    filename: str
    content_type: str
    data: bytes


class MediaStore(Protocol):
    async def upload(self, image: ImageUpload, *, public_id: str) -> UploadedImage: ...

    async def delete(self, public_id: str) -> None: ...

    def url(self, public_id: str, **options: Any) -> str: ...

    def variants(self, public_id: str) -> Dict[str, str]: ...


def validate_images(images: Iterable[ImageUpload], field: str = "image") -> None:
    """Reject non-image uploads and files above ``MAX_IMAGE_BYTES``."""

    errors = []
    for image in images:
        if not (image.content_type or "").startswith("image/"):
            errors.append(FieldError(field=field, message="Only image files are allowed!"))
        elif len(image.data) > MAX_IMAGE_BYTES:
            errors.append(FieldError(field=field, message="Image exceeds the 10MB size limit"))
    if errors:
        raise ValidationError(errors)


def build_transformation(options: Dict[str, Any]) -> str:
    parts = []
    for key, value in options.items():
        if value is None:
            continue
        short = _TRANSFORMATION_KEYS.get(key, key)
        parts.append(f"{short}_{value}")
    return ",".join(sorted(parts))


class CloudinaryMediaStore:
    """Upload, delete and derive delivery URLs for images on Cloudinary."""

    def __init__(
        self,
        config: Optional[MediaStoreConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or MediaStoreConfig.from_env()
        self._client = client
        self._owns_client = client is None

    @property
    def config(self) -> MediaStoreConfig:
        return self._config

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
            self._owns_client = True
        if not self._config.is_configured:
            logger.warning("Cloudinary credentials missing; image uploads will fail")
        logger.info("Media store started", cloud_name=self._config.cloud_name or None)

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("Media store stopped")

    async def upload(self, image: ImageUpload, *, public_id: str) -> UploadedImage:
        params = {
            "public_id": public_id,
            "folder": self._config.folder,
            "allowed_formats": ",".join(ALLOWED_FORMATS),
            "transformation": self._config.upload_transformation,
        }
        files = {"file": (image.filename or "upload", image.data, image.content_type)}
        payload = await self._post("upload", params, files=files)
        stored_id = payload.get("public_id")
        url = payload.get("secure_url") or payload.get("url")
        if not stored_id or not url:
            MEDIA_REQUESTS.labels(operation="upload", status="error").inc()
            raise RemoteMediaError("Media store returned an incomplete upload response")
        MEDIA_REQUESTS.labels(operation="upload", status="success").inc()
        logger.info("Uploaded image", public_id=stored_id)
        return UploadedImage(public_id=stored_id, url=url)

    async def delete(self, public_id: str) -> None:
        payload = await self._post("destroy", {"public_id": public_id})
        result = payload.get("result")
        if result == "not found":
            logger.debug("Image already absent from media store", public_id=public_id)
        elif result != "ok":
            MEDIA_REQUESTS.labels(operation="delete", status="error").inc()
            raise RemoteMediaError(f"Media store refused deletion: {result}", public_id=public_id)
        MEDIA_REQUESTS.labels(operation="delete", status="success").inc()
        logger.info("Deleted image", public_id=public_id)

    def url(self, public_id: str, **options: Any) -> str:
        path = public_id
        if "/" in path and not _VERSION_PREFIX.match(path):
            path = f"v1/{path}"
        base = f"{self._config.delivery_base_url}/{self._config.cloud_name}/image/upload"
        transformation = build_transformation(options)
        if transformation:
            return f"{base}/{transformation}/{path}"
        return f"{base}/{path}"

    def optimized_url(self, public_id: str, **options: Any) -> str:
        merged = dict(DEFAULT_URL_OPTIONS)
        merged.update(options)
        return self.url(public_id, **merged)

    def variants(self, public_id: str) -> Dict[str, str]:
        urls = {
            name: self.optimized_url(public_id, width=width, height=height)
            for name, (width, height) in VARIANT_SIZES.items()
        }
        urls["original"] = self.url(public_id)
        return urls

    def sign(self, params: Dict[str, Any]) -> str:
        to_sign = "&".join(
            f"{key}={value}"
            for key, value in sorted(params.items())
            if value not in (None, "")
        )
        return hashlib.sha1(f"{to_sign}{self._config.api_secret}".encode("utf-8")).hexdigest()

    async def _post(
        self,
        action: str,
        params: Dict[str, Any],
        *,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        operation = "upload" if action == "upload" else "delete"
        if not self._config.is_configured:
            MEDIA_REQUESTS.labels(operation=operation, status="error").inc()
            raise RemoteMediaError("Media store is not configured", public_id=params.get("public_id"))
        if self._client is None:
            raise RuntimeError("CloudinaryMediaStore not started")

        signed = dict(params)
        signed["timestamp"] = int(time.time())
        signed["signature"] = self.sign(signed)
        signed["api_key"] = self._config.api_key
        endpoint = f"{self._config.api_base_url}/{self._config.cloud_name}/image/{action}"

        try:
            response = await self._client.post(endpoint, data=signed, files=files)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            MEDIA_REQUESTS.labels(operation=operation, status="error").inc()
            raise RemoteMediaError(
                f"Media store returned HTTP {exc.response.status_code}",
                public_id=params.get("public_id"),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            MEDIA_REQUESTS.labels(operation=operation, status="error").inc()
            raise RemoteMediaError(
                f"Media store request failed: {exc}",
                public_id=params.get("public_id"),
            ) from exc


async def delete_images(
    media_store: MediaStore,
    public_ids: Iterable[str],
    *,
    property_id: Optional[str] = None,
) -> List[str]:
    """Delete each image independently and return the ids that failed.

    Failures are logged and never raised.
    """

    failed = []
    for public_id in public_ids:
        try:
            await media_store.delete(public_id)
        except Exception as exc:
            failed.append(public_id)
            logger.warning(
                "Failed to delete image from media store",
                property_id=property_id,
                public_id=public_id,
                error=str(exc),
            )
    return failed
