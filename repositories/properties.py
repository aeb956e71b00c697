"""Repository for property listing persistence."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from db.models import Property
from utils.error_handling import NotFound, PersistenceError, ValidationError

_SORT_COLUMNS = {
    "price": Property.price,
    "createdAt": Property.created_at,
    "title": Property.title,
}


@dataclass(slots=True)
class PropertyFilters:
    """Query-string filters for listing properties."""

    status: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    search: Optional[str] = None

    def clauses(self) -> List[Any]:
        filters = []
        if self.status:
            filters.append(Property.status == self.status)
        if self.property_type:
            filters.append(Property.property_type == self.property_type)
        if self.bedrooms is not None:
            filters.append(Property.bedrooms == self.bedrooms)
        if self.bathrooms is not None:
            filters.append(Property.bathrooms == self.bathrooms)
        if self.min_price is not None:
            filters.append(Property.price >= self.min_price)
        if self.max_price is not None:
            filters.append(Property.price <= self.max_price)
        if self.city:
            filters.append(_icontains(Property.city, self.city))
        if self.state:
            filters.append(_icontains(Property.state, self.state))
        if self.search:
            filters.append(
                _icontains(Property.title, self.search)
                | _icontains(Property.address, self.search)
                | _icontains(Property.description, self.search)
            )
        return filters


def _icontains(column, term: str):
    return func.lower(func.coalesce(column, "")).contains(term.lower(), autoescape=True)


def _order_by(sort: str):
    descending = sort.startswith("-")
    column = _SORT_COLUMNS[sort.lstrip("-")]
    primary = column.desc() if descending else column.asc()
    # Stable paging when the sort column has ties
    return primary, Property.id.desc() if descending else Property.id.asc()


class PropertyRepository:
    """Encapsulates persistence logic for property listings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_property(self, data: Dict[str, Any]) -> Property:
        values = dict(data)
        external_id = values.pop("id", None) or str(uuid.uuid4())
        location = values.pop("location", None)

        if await self.get_by_external_id(external_id) is not None:
            raise ValidationError.single("id", "A property with this id already exists")

        prop = Property(external_id=external_id, **values)
        prop.apply_location(location)
        self.session.add(prop)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise PersistenceError(f"Failed to create property: {exc.orig}") from exc
        logger.debug("Created property", property_id=external_id)
        return prop

    async def get_by_external_id(self, external_id: str) -> Optional[Property]:
        stmt = select(Property).where(Property.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def require(self, external_id: str) -> Property:
        prop = await self.get_by_external_id(external_id)
        if prop is None:
            raise NotFound()
        return prop

    async def list_properties(
        self,
        *,
        page: int,
        limit: int,
        sort: str = "-createdAt",
        filters: Optional[PropertyFilters] = None,
    ) -> Tuple[List[Property], int]:
        clauses = (filters or PropertyFilters()).clauses()

        stmt = select(Property)
        count_stmt = select(func.count(Property.id))
        if clauses:
            stmt = stmt.where(*clauses)
            count_stmt = count_stmt.where(*clauses)
        stmt = stmt.order_by(*_order_by(sort))

        total = (await self.session.execute(count_stmt)).scalar_one()
        offset = (page - 1) * limit
        result = await self.session.execute(stmt.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def list_by_status(self, status: str) -> List[Property]:
        stmt = select(Property).where(Property.status == status).order_by(Property.id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_property(self, prop: Property, changes: Dict[str, Any]) -> Property:
        values = dict(changes)
        location = values.pop("location", None)
        for key, value in values.items():
            setattr(prop, key, value)
        prop.apply_location(location)
        prop.update_timestamps()
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise NotFound() from exc
        logger.debug("Updated property", property_id=prop.external_id, fields=sorted(changes))
        return prop

    async def delete_property(self, prop: Property) -> None:
        """Delete ``prop``; a row already removed by another writer raises ``NotFound``."""
        await self.session.delete(prop)
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise NotFound() from exc
        logger.debug("Deleted property", property_id=prop.external_id)

    async def stats(self) -> Dict[str, Any]:
        overview_stmt = select(
            func.count(Property.id),
            func.avg(Property.price),
            func.min(Property.price),
            func.max(Property.price),
            func.sum(case((Property.status == "active", 1), else_=0)),
            func.sum(case((Property.status == "pending", 1), else_=0)),
            func.sum(case((Property.status == "sold", 1), else_=0)),
        )
        row = (await self.session.execute(overview_stmt)).one()
        total, avg_price, min_price, max_price, active, pending, sold = row
        overview = {
            "total_properties": total or 0,
            "average_price": float(avg_price or 0),
            "min_price": float(min_price or 0),
            "max_price": float(max_price or 0),
            "active_properties": int(active or 0),
            "pending_properties": int(pending or 0),
            "sold_properties": int(sold or 0),
        }

        count_col = func.count(Property.id).label("count")
        type_stmt = (
            select(Property.property_type, count_col, func.avg(Property.price))
            .group_by(Property.property_type)
            .order_by(count_col.desc(), Property.property_type.asc())
        )
        type_rows = (await self.session.execute(type_stmt)).all()
        property_types = [
            {
                "property_type": property_type,
                "count": count,
                "average_price": float(average or 0),
            }
            for property_type, count, average in type_rows
        ]
        return {"overview": overview, "property_types": property_types}
