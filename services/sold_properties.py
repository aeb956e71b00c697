"""Sold-property workflow: remove the listing, its images, and log the sale."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Property
from repositories import PropertyRepository
from schemas.properties import LocationSchema
from schemas.sales import (
    CleanupError,
    CleanupResult,
    SaleLogEntry,
    SoldPropertyRecord,
    SoldPropertySnapshot,
)
from services.media_store import MediaStore, delete_images
from services.sale_log import SaleLog
from utils.error_handling import AlreadySold

ACTION_MARKED_AS_SOLD = "marked-as-sold"
ACTION_UPDATED_TO_SOLD = "updated-to-sold"
ACTION_CLEANUP = "cleanup-sold"

PROPERTIES_SOLD = Counter(
    "properties_sold_total",
    "Properties removed through the sold workflow",
    labelnames=["action"],
)
MEDIA_DELETE_FAILURES = Counter(
    "sold_property_media_delete_failures_total",
    "Remote image deletions that failed while removing sold properties",
)


def snapshot_property(prop: Property) -> SoldPropertyRecord:
    location = prop.location_dict()
    return SoldPropertyRecord(
        id=prop.external_id,
        title=prop.title,
        address=prop.address,
        price=prop.price,
        bedrooms=prop.bedrooms,
        bathrooms=prop.bathrooms,
        property_type=prop.property_type,
        square_footage=prop.square_footage,
        year_built=prop.year_built,
        features=list(prop.features or []),
        location=LocationSchema(**location) if location else None,
        media_ids=list(prop.media_ids or []),
        created_at=prop.created_at,
    )


class SoldPropertyWorkflow:
    """Carries a listing across the one-way ``sold`` edge.

    The listing record and its images are removed and a sale log entry is
    written in the same call. Image deletion failures are logged and counted;
    they never stop the record from being removed.
    """

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
        self._sale_log = sale_log

    async def mark_sold(self, external_id: str) -> SoldPropertySnapshot:
        prop = await self._repo.require(external_id)
        if prop.status == "sold":
            raise AlreadySold()

        record = await self.remove_sold(prop, action=ACTION_MARKED_AS_SOLD)
        logger.info(
            "Property marked as sold and removed",
            property_id=record.id,
            title=record.title,
        )
        return SoldPropertySnapshot(id=record.id, title=record.title, price=record.price)

    async def remove_sold(
        self,
        prop: Property,
        *,
        action: str,
        record: Optional[SoldPropertyRecord] = None,
        extra_media_ids: Optional[list] = None,
    ) -> SoldPropertyRecord:
        """Delete images and the record, then append the sale log entry.

        ``record`` overrides the snapshot taken from ``prop``, which lets an
        update that sets ``status=sold`` log its merged field values. The
        session is committed before the log entry is written.
        """

        record = record or snapshot_property(prop)
        media_ids = list(record.media_ids) + list(extra_media_ids or [])

        failed = await delete_images(self._media_store, media_ids, property_id=record.id)
        if failed:
            MEDIA_DELETE_FAILURES.inc(len(failed))

        await self._repo.delete_property(prop)
        await self._session.commit()

        sold_at = datetime.now(timezone.utc)
        record = record.model_copy(update={"sold_at": sold_at})
        self._sale_log.append(SaleLogEntry(timestamp=sold_at, action=action, property=record))
        PROPERTIES_SOLD.labels(action=action).inc()
        return record

    async def cleanup_sold(self) -> CleanupResult:
        """Remove every listing left in ``sold`` state by out-of-band writes."""

        result = CleanupResult()
        stragglers = await self._repo.list_by_status("sold")
        if not stragglers:
            logger.info("No sold properties found to cleanup")
            return result

        # A rollback expires loaded rows, so each listing is re-read by id.
        targets = [(prop.external_id, prop.title) for prop in stragglers]
        for external_id, title in targets:
            try:
                prop = await self._repo.get_by_external_id(external_id)
                if prop is None:
                    continue
                await self.remove_sold(prop, action=ACTION_CLEANUP)
            except Exception as exc:
                await self._session.rollback()
                logger.warning(
                    "Failed to cleanup sold property",
                    property_id=external_id,
                    error=str(exc),
                )
                result.errors.append(CleanupError(id=external_id, title=title, error=str(exc)))
                continue
            result.cleaned_count += 1
            logger.info("Cleaned up sold property", property_id=external_id, title=title)

        logger.info(
            "Sold property cleanup finished",
            cleaned=result.cleaned_count,
            failed=len(result.errors),
        )
        return result
