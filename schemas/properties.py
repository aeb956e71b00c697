"""Pydantic schemas for property listings."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PropertyStatus = Literal["active", "pending", "sold"]
PropertyType = Literal["house", "apartment", "condo", "townhouse", "villa", "land", "commercial"]
SortKey = Literal["price", "-price", "createdAt", "-createdAt", "title", "-title"]

MIN_YEAR_BUILT = 1800
FUTURE_YEARS_ALLOWED = 5


def max_year_built() -> int:
    return datetime.now(timezone.utc).year + FUTURE_YEARS_ALLOWED


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


class LocationSchema(CamelModel):
    coordinates: Optional[List[float]] = Field(
        None,
        min_length=2,
        max_length=2,
        description="[longitude, latitude]",
    )
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = "US"


class LocationUpdate(LocationSchema):
    country: Optional[str] = None


def _check_year_built(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    if value < MIN_YEAR_BUILT:
        raise ValueError(f"Year built cannot be before {MIN_YEAR_BUILT}")
    if value > max_year_built():
        raise ValueError(
            f"Year built cannot be more than {FUTURE_YEARS_ALLOWED} years in the future"
        )
    return value


class PropertyCreate(CamelModel):
    """Payload for creating a property."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0)
    bedrooms: int = Field(..., ge=0, le=50)
    bathrooms: int = Field(..., ge=0, le=50)
    status: PropertyStatus = "active"
    square_footage: Optional[float] = Field(None, ge=0)
    year_built: Optional[int] = None
    property_type: PropertyType = "house"
    features: List[str] = Field(default_factory=list)
    image_urls: Optional[List[str]] = None
    location: Optional[LocationSchema] = None

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            return str(uuid.UUID(value))
        except ValueError as exc:
            raise ValueError("Id must be a valid UUID") from exc

    @field_validator("year_built")
    @classmethod
    def _check_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_year_built(value)

    @field_validator("features")
    @classmethod
    def _strip_features(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item and item.strip()]

    @field_validator("status")
    @classmethod
    def _reject_sold(cls, value: str) -> str:
        if value == "sold":
            raise ValueError("A property cannot be created with status sold")
        return value


_NON_NULLABLE_UPDATE_FIELDS = {
    "title",
    "address",
    "description",
    "price",
    "bedrooms",
    "bathrooms",
    "status",
    "property_type",
}


class PropertyUpdate(CamelModel):
    """Partial update payload. Omitted fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[int] = Field(None, ge=0, le=50)
    status: Optional[PropertyStatus] = None
    square_footage: Optional[float] = Field(None, ge=0)
    year_built: Optional[int] = None
    property_type: Optional[PropertyType] = None
    features: Optional[List[str]] = None
    location: Optional[LocationUpdate] = None

    @field_validator("year_built")
    @classmethod
    def _check_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_year_built(value)

    @field_validator("features")
    @classmethod
    def _strip_features(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        return [item.strip() for item in value if item and item.strip()]

    @model_validator(mode="after")
    def _reject_nulls(self) -> "PropertyUpdate":
        for name in self.model_fields_set & _NON_NULLABLE_UPDATE_FIELDS:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


class PropertyResponse(CamelModel):
    id: str
    title: str
    address: str
    description: str
    price: float
    formatted_price: str
    bedrooms: int
    bathrooms: int
    status: str
    square_footage: Optional[float] = None
    year_built: Optional[int] = None
    property_age: Optional[int] = None
    property_type: str
    features: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)
    media_ids: List[str] = Field(default_factory=list, alias="cloudinaryPublicIds")
    location: Optional[LocationSchema] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, prop: Any) -> "PropertyResponse":
        location = prop.location_dict()
        return cls(
            id=prop.external_id,
            title=prop.title,
            address=prop.address,
            description=prop.description,
            price=prop.price,
            formatted_price=format_price(prop.price),
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            status=prop.status,
            square_footage=prop.square_footage,
            year_built=prop.year_built,
            property_age=property_age(prop.year_built),
            property_type=prop.property_type,
            features=prop.features or [],
            image_urls=prop.image_urls or [],
            media_ids=prop.media_ids or [],
            location=LocationSchema(**location) if location else None,
            created_at=prop.created_at,
            updated_at=prop.updated_at,
        )


def format_price(price: float) -> str:
    return f"${price:,.2f}"


def property_age(year_built: Optional[int]) -> Optional[int]:
    if year_built is None:
        return None
    return datetime.now(timezone.utc).year - year_built


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, *, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class PropertyOverview(CamelModel):
    total_properties: int = 0
    average_price: float = 0
    min_price: float = 0
    max_price: float = 0
    active_properties: int = 0
    pending_properties: int = 0
    sold_properties: int = 0


class PropertyTypeStats(CamelModel):
    property_type: str
    count: int
    average_price: float


class PropertyStats(CamelModel):
    overview: PropertyOverview
    property_types: List[PropertyTypeStats]


class ImageVariants(CamelModel):
    thumbnail: str
    medium: str
    large: str
    original: str


class ImageUploadResult(CamelModel):
    image_urls: List[str]
    public_ids: List[str]
    variants: List[ImageVariants]

