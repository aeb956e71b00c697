"""SQLAlchemy models for persisted property listings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base declarative class for SQLAlchemy models."""


JSONType = JSONB().with_variant(JSON(), "sqlite")

PROPERTY_STATUSES = ("active", "pending", "sold")
PROPERTY_TYPES = ("house", "apartment", "condo", "townhouse", "villa", "land", "commercial")


class Property(Base):
    """A property-for-sale listing."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, default="active", nullable=False)
    square_footage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    year_built: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    property_type: Mapped[str] = mapped_column(String(32), index=True, default="house", nullable=False)
    features: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    image_urls: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    media_ids: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    # Concurrent writers on the same row lose with StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    def update_timestamps(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def location_dict(self) -> Optional[Dict[str, Any]]:
        coordinates = None
        if self.longitude is not None and self.latitude is not None:
            coordinates = [self.longitude, self.latitude]
        location = {
            "coordinates": coordinates,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
        }
        if all(value is None for value in location.values()):
            return None
        return location

    def apply_location(self, location: Optional[Dict[str, Any]]) -> None:
        """Copy a ``LocationSchema``-shaped mapping onto the flat columns."""
        if location is None:
            return
        if "coordinates" in location:
            coordinates = location["coordinates"]
            if coordinates:
                self.longitude, self.latitude = coordinates[0], coordinates[1]
            else:
                self.longitude = self.latitude = None
        for key in ("city", "state", "zip_code", "country"):
            if key in location:
                setattr(self, key, location[key])
