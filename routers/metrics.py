"""Prometheus exposition for listing counts and sold-workflow counters."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, Gauge, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession

from db import PROPERTY_STATUSES
from db.session import get_session
from repositories import PropertyRepository

LISTINGS = Gauge(
    "estate_listings",
    "Listings currently stored, by status",
    labelnames=["status"],
)

router = APIRouter(tags=["monitoring"])


@router.get("/metrics")
async def metrics(session: AsyncSession = Depends(get_session)) -> Response:
    """Refresh the listing gauges, then return the metrics registry."""

    overview = (await PropertyRepository(session).stats())["overview"]
    for status in PROPERTY_STATUSES:
        LISTINGS.labels(status=status).set(overview[f"{status}_properties"])
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
