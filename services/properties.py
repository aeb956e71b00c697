"""Property lifecycle: create, update, delete and image replacement."""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Property
from repositories import PropertyFilters, PropertyRepository
from schemas.properties import (
    ImageUploadResult,
    ImageVariants,
    Pagination,
    PropertyCreate,
    PropertyOverview,
    PropertyStats,
    PropertyTypeStats,
    PropertyUpdate,
)
from schemas.sales import SoldPropertySnapshot
from services.media_store import (
    ImageUpload,
    MediaStore,
    UploadedImage,
    delete_images,
    validate_images,
)
from services.sale_log import SaleLog
from services.sold_properties import (
    ACTION_UPDATED_TO_SOLD,
    SoldPropertyWorkflow,
    snapshot_property,
)
from utils.error_handling import AlreadySold, ValidationError

PLACEHOLDER_IMAGE_URL = (
    "https://images.unsplash.com/photo-1560518883-ce09059eeffa"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=1000&q=80"
)


def _default_image_url() -> str:
    return os.getenv("DEFAULT_PROPERTY_IMAGE_URL", PLACEHOLDER_IMAGE_URL)


@dataclass(slots=True)
class UpdateOutcome:
    """Result of an update: either the saved listing or the sold snapshot."""

    listing: Optional[Property] = None
    sold: Optional[SoldPropertySnapshot] = None

    @property
    def removed(self) -> bool:
        return self.sold is not None


class PropertyService:
    """Coordinates the listing store with the media store for write operations."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        media_store: MediaStore,
        sale_log: SaleLog,
    ) -> None:
        self._session = session
        self._repo = PropertyRepository(session)
        self._media_store = media_store
        self._workflow = SoldPropertyWorkflow(
            session=session,
            media_store=media_store,
            sale_log=sale_log,
        )

    @property
    def workflow(self) -> SoldPropertyWorkflow:
        return self._workflow

    async def list_properties(
        self,
        *,
        page: int,
        limit: int,
        sort: str,
        filters: PropertyFilters,
    ) -> Tuple[List[Property], Pagination]:
        items, total = await self._repo.list_properties(
            page=page,
            limit=limit,
            sort=sort,
            filters=filters,
        )
        return items, Pagination.build(page=page, limit=limit, total=total)

    async def get(self, external_id: str) -> Property:
        return await self._repo.require(external_id)

    async def create(self, payload: PropertyCreate, images: Sequence[ImageUpload] = ()) -> Property:
        validate_images(images)
        data = payload.model_dump()
        data["id"] = data.get("id") or str(uuid.uuid4())

        uploaded = await self._upload(images, property_id=data["id"])
        if uploaded:
            data["image_urls"] = [image.url for image in uploaded]
            data["media_ids"] = [image.public_id for image in uploaded]
        elif not data.get("image_urls"):
            data["image_urls"] = [_default_image_url()]

        try:
            prop = await self._repo.create_property(data)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            await self._discard(uploaded, data["id"])
            raise

        logger.info("Property created", property_id=prop.external_id, images=len(uploaded))
        return prop

    async def update(
        self,
        external_id: str,
        payload: PropertyUpdate,
        images: Sequence[ImageUpload] = (),
    ) -> UpdateOutcome:
        prop = await self._repo.require(external_id)
        if prop.status == "sold":
            raise AlreadySold()
        validate_images(images)

        changes = payload.changes()
        uploaded = await self._upload(images, property_id=external_id)

        if changes.get("status") == "sold":
            return await self._update_to_sold(prop, changes, uploaded)

        superseded = list(prop.media_ids or []) if uploaded else []
        if uploaded:
            changes["image_urls"] = [image.url for image in uploaded]
            changes["media_ids"] = [image.public_id for image in uploaded]

        try:
            prop = await self._repo.update_property(prop, changes)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            await self._discard(uploaded, external_id)
            raise

        await delete_images(self._media_store, superseded, property_id=external_id)
        logger.info("Property updated", property_id=external_id, fields=sorted(changes))
        return UpdateOutcome(listing=prop)

    async def _update_to_sold(
        self,
        prop: Property,
        changes: dict,
        uploaded: List[UploadedImage],
    ) -> UpdateOutcome:
        location = changes.pop("location", None)
        for key, value in changes.items():
            setattr(prop, key, value)
        prop.apply_location(location)
        record = snapshot_property(prop)

        try:
            record = await self._workflow.remove_sold(
                prop,
                action=ACTION_UPDATED_TO_SOLD,
                record=record,
                extra_media_ids=[image.public_id for image in uploaded],
            )
        except Exception:
            await self._session.rollback()
            await self._discard(uploaded, record.id)
            raise

        logger.info("Property updated to sold and removed", property_id=record.id)
        return UpdateOutcome(
            sold=SoldPropertySnapshot(id=record.id, title=record.title, price=record.price)
        )

    async def delete(self, external_id: str) -> None:
        prop = await self._repo.require(external_id)
        await delete_images(self._media_store, list(prop.media_ids or []), property_id=external_id)
        await self._repo.delete_property(prop)
        await self._session.commit()
        logger.info("Property deleted", property_id=external_id)

    async def replace_images(
        self,
        external_id: str,
        images: Sequence[ImageUpload],
        *,
        replace: bool = True,
    ) -> ImageUploadResult:
        if not images:
            raise ValidationError.single("image", "No image file provided")
        validate_images(images)
        prop = await self._repo.require(external_id)

        uploaded = await self._upload(images, property_id=external_id)
        existing_ids = list(prop.media_ids or [])
        new_ids = [image.public_id for image in uploaded]
        new_urls = [image.url for image in uploaded]
        if replace:
            superseded = existing_ids
            changes = {"image_urls": new_urls, "media_ids": new_ids}
        else:
            superseded = []
            kept_urls = [url for url in (prop.image_urls or []) if url != _default_image_url()]
            changes = {"image_urls": kept_urls + new_urls, "media_ids": existing_ids + new_ids}

        try:
            await self._repo.update_property(prop, changes)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            await self._discard(uploaded, external_id)
            raise

        await delete_images(self._media_store, superseded, property_id=external_id)
        logger.info(
            "Property images uploaded",
            property_id=external_id,
            uploaded=len(uploaded),
            replaced=len(superseded),
        )
        return ImageUploadResult(
            image_urls=new_urls,
            public_ids=new_ids,
            variants=[ImageVariants(**self._media_store.variants(pid)) for pid in new_ids],
        )

    async def stats(self) -> PropertyStats:
        raw = await self._repo.stats()
        return PropertyStats(
            overview=PropertyOverview(**raw["overview"]),
            property_types=[PropertyTypeStats(**item) for item in raw["property_types"]],
        )

    async def _upload(self, images: Sequence[ImageUpload], *, property_id: str) -> List[UploadedImage]:
        uploaded: List[UploadedImage] = []
        timestamp = int(time.time() * 1000)
        for index, image in enumerate(images):
            public_id = f"property-{property_id}-{timestamp}"
            if len(images) > 1:
                public_id = f"{public_id}-{index}"
            try:
                uploaded.append(await self._media_store.upload(image, public_id=public_id))
            except Exception:
                await self._discard(uploaded, property_id)
                raise
        return uploaded

    async def _discard(self, uploaded: Sequence[UploadedImage], property_id: str) -> None:
        if uploaded:
            await delete_images(
                self._media_store,
                [image.public_id for image in uploaded],
                property_id=property_id,
            )
