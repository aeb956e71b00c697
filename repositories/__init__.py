"""Repository helpers for database interactions."""

from .properties import PropertyFilters, PropertyRepository

__all__ = ["PropertyFilters", "PropertyRepository"]
