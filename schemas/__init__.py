"""Pydantic schemas for API requests and responses."""

from .properties import (
    ImageUploadResult,
    ImageVariants,
    LocationSchema,
    Pagination,
    PropertyCreate,
    PropertyOverview,
    PropertyResponse,
    PropertyStats,
    PropertyTypeStats,
    PropertyUpdate,
    SortKey,
)
from .sales import (
    CleanupError,
    CleanupResult,
    RecentSale,
    SaleLogEntry,
    SaleStats,
    SoldPropertyRecord,
    SoldPropertySnapshot,
)

__all__ = [
    "CleanupError",
    "CleanupResult",
    "ImageUploadResult",
    "ImageVariants",
    "LocationSchema",
    "Pagination",
    "PropertyCreate",
    "PropertyOverview",
    "PropertyResponse",
    "PropertyStats",
    "PropertyTypeStats",
    "PropertyUpdate",
    "RecentSale",
    "SaleLogEntry",
    "SaleStats",
    "SoldPropertyRecord",
    "SoldPropertySnapshot",
    "SortKey",
]
