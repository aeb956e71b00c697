"""Pydantic schemas for the sale log and the sold-property workflow."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from .properties import CamelModel, LocationSchema


class SoldPropertyRecord(CamelModel):
    """Snapshot of a listing's descriptive fields at the moment of sale."""

    id: str
    title: str
    address: Optional[str] = None
    price: float = 0
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    property_type: Optional[str] = None
    square_footage: Optional[float] = None
    year_built: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    location: Optional[LocationSchema] = None
    media_ids: List[str] = Field(default_factory=list, alias="cloudinaryPublicIds")
    created_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None


class SaleLogEntry(CamelModel):
    """One line of the sale log."""

    timestamp: datetime
    action: str
    property: SoldPropertyRecord


class SoldPropertySnapshot(CamelModel):
    id: str
    title: str
    price: float


class CleanupError(CamelModel):
    id: str
    title: str
    error: str


class CleanupResult(CamelModel):
    cleaned_count: int = 0
    errors: List[CleanupError] = Field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.cleaned_count and not self.errors:
            return "No sold properties found to cleanup"
        return f"Cleanup completed. Removed {self.cleaned_count} sold properties"


class RecentSale(CamelModel):
    id: str
    title: str
    price: float
    sold_at: datetime


class SaleStats(CamelModel):
    period: str
    total_sales: int = 0
    total_value: float = 0
    average_price: float = 0
    sales_by_type: Dict[str, int] = Field(default_factory=dict)
    sales_by_month: Dict[str, int] = Field(default_factory=dict)
    recent_sales: List[RecentSale] = Field(default_factory=list)
