"""API endpoints for property listings."""

from __future__ import annotations

from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from repositories import PropertyFilters
from schemas import PropertyCreate, PropertyResponse, PropertyUpdate, SortKey
from schemas.properties import PropertyStatus, PropertyType
from services.media_store import MediaStore
from services.properties import PropertyService
from services.sale_log import MAX_WINDOW_DAYS, SaleLog
from utils.error_handling import ValidationError
from utils.forms import read_images, read_payload

ModelT = TypeVar("ModelT", bound=BaseModel)

router = APIRouter(prefix="/properties", tags=["properties"])


def _get_media_store(request: Request) -> MediaStore:
    media_store = getattr(request.app.state, "media_store", None)
    if media_store is None:
        raise HTTPException(status_code=503, detail="Media store is not available")
    return media_store


def _get_sale_log(request: Request) -> SaleLog:
    sale_log = getattr(request.app.state, "sale_log", None)
    if sale_log is None:
        raise HTTPException(status_code=503, detail="Sale log is not available")
    return sale_log


def get_property_service(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> PropertyService:
    return PropertyService(
        session=session,
        media_store=_get_media_store(request),
        sale_log=_get_sale_log(request),
    )


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


def _ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = _dump(data)
    for key, value in extra.items():
        body[key] = _dump(value)
    return body


def _validate(model: Type[ModelT], fields: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(fields)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


@router.get("")
async def list_properties(
    *,
    service: PropertyService = Depends(get_property_service),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: SortKey = Query("-createdAt"),
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    min_price: Optional[float] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[float] = Query(None, ge=0, alias="maxPrice"),
    bedrooms: Optional[int] = Query(None, ge=0),
    bathrooms: Optional[int] = Query(None, ge=0),
    property_type: Optional[PropertyType] = Query(None, alias="propertyType"),
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in title, address and description"),
) -> Dict[str, Any]:
    filters = PropertyFilters(
        status=status_filter,
        property_type=property_type,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        min_price=min_price,
        max_price=max_price,
        city=city.strip() if city else None,
        state=state.strip() if state else None,
        search=search.strip() if search else None,
    )
    items, pagination = await service.list_properties(
        page=page,
        limit=limit,
        sort=sort,
        filters=filters,
    )
    return _ok(
        [PropertyResponse.from_model(item) for item in items],
        pagination=pagination,
    )


@router.get("/stats")
async def property_stats(service: PropertyService = Depends(get_property_service)) -> Dict[str, Any]:
    return _ok(await service.stats())


@router.get("/sold-stats")
async def sold_property_stats(
    request: Request,
    days: int = Query(30, ge=0, le=MAX_WINDOW_DAYS, description="Number of days to look back"),
) -> Dict[str, Any]:
    sale_log = _get_sale_log(request)
    return _ok(sale_log.stats_since(days))


@router.post("/cleanup-sold")
async def cleanup_sold_properties(
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    result = await service.workflow.cleanup_sold()
    return _ok(result, result.message)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(
    request: Request,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    fields, images = await read_payload(request)
    payload = _validate(PropertyCreate, fields)
    prop = await service.create(payload, images)
    return _ok(PropertyResponse.from_model(prop), "Property created successfully")


@router.get("/{property_id}")
async def get_property(
    property_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    prop = await service.get(property_id)
    return _ok(PropertyResponse.from_model(prop))


@router.put("/{property_id}")
async def update_property(
    property_id: str,
    request: Request,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    fields, images = await read_payload(request)
    payload = _validate(PropertyUpdate, fields)
    outcome = await service.update(property_id, payload, images)
    if outcome.removed:
        return _ok(outcome.sold, "Property marked as sold and removed from listings")
    return _ok(PropertyResponse.from_model(outcome.listing), "Property updated successfully")


@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    await service.delete(property_id)
    return _ok(message="Property deleted successfully")


@router.post("/{property_id}/image")
async def upload_property_image(
    property_id: str,
    request: Request,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    images = await read_images(request)
    result = await service.replace_images(property_id, images[:1])
    return _ok(result, "Image uploaded successfully")


@router.post("/{property_id}/images")
async def upload_property_images(
    property_id: str,
    request: Request,
    replace: bool = Query(True, description="Replace existing images instead of appending"),
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    images = await read_images(request)
    result = await service.replace_images(property_id, images, replace=replace)
    return _ok(result, "Images uploaded successfully")


@router.post("/{property_id}/sold")
async def mark_property_sold(
    property_id: str,
    service: PropertyService = Depends(get_property_service),
) -> Dict[str, Any]:
    snapshot = await service.workflow.mark_sold(property_id)
    return _ok(snapshot, "Property marked as sold and removed from listings")
