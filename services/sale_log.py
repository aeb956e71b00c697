"""Append-only log of sold properties and the statistics read back from it."""

from __future__ import annotations

import os
from collections import Counter as TallyCounter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import IO, List, Optional, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from schemas.sales import RecentSale, SaleLogEntry, SaleStats

RECENT_SALES_LIMIT = 10
MAX_WINDOW_DAYS = 36500


def default_log_path() -> Path:
    return Path(os.getenv("SALE_LOG_PATH", "./logs/sold-properties.log"))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SaleLog:
    """Newline-delimited JSON file of ``SaleLogEntry`` records.

    ``open()`` prepares the directory and an append handle; ``close()`` releases
    it. Appending on a log that was never opened opens it lazily. Reading never
    needs the append handle, so statistics work on a closed log too.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self._path = Path(path) if path is not None else default_log_path()
        self._handle: Optional[IO[str]] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> "SaleLog":
        if self._handle is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self._path.open("a", encoding="utf-8")
            logger.debug("Opened sale log", path=str(self._path))
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            logger.debug("Closed sale log", path=str(self._path))

    def __enter__(self) -> "SaleLog":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def append(self, entry: SaleLogEntry) -> bool:
        """Write ``entry`` as one line. Returns ``False`` if the write failed."""

        try:
            handle = self.open()._handle
            handle.write(entry.model_dump_json(by_alias=True) + "\n")
            handle.flush()
        except (OSError, ValueError) as exc:
            logger.error(
                "Failed to append sale log entry",
                path=str(self._path),
                property_id=entry.property.id,
                error=str(exc),
            )
            return False

        logger.info(
            "Logged sold property",
            property_id=entry.property.id,
            title=entry.property.title,
            action=entry.action,
        )
        return True

    def read_entries(self) -> List[SaleLogEntry]:
        """Return every parseable entry; corrupt lines are skipped."""

        if not self._path.exists():
            return []

        entries = []
        # Decoded per line so a torn multi-byte write only loses that line
        with self._path.open("rb") as handle:
            for line_number, raw in enumerate(handle, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    entries.append(SaleLogEntry.model_validate_json(raw.decode("utf-8")))
                except (PydanticValidationError, ValueError):
                    logger.warning(
                        "Skipping unparsable sale log line",
                        path=str(self._path),
                        line=line_number,
                    )
        return entries

    def stats_since(self, days: int, *, now: Optional[datetime] = None) -> SaleStats:
        now = _as_utc(now or datetime.now(timezone.utc))
        try:
            cutoff = now - timedelta(days=days)
        except OverflowError:
            cutoff = datetime.min.replace(tzinfo=timezone.utc)
        period = f"Last {days} days"

        recent = [
            entry for entry in self.read_entries() if _as_utc(entry.timestamp) >= cutoff
        ]
        if not recent:
            return SaleStats(period=period)

        total_value = sum(entry.property.price or 0 for entry in recent)
        by_type = TallyCounter(entry.property.property_type or "unknown" for entry in recent)
        by_month = TallyCounter(_as_utc(entry.timestamp).strftime("%Y-%m") for entry in recent)

        newest_first = sorted(recent, key=lambda entry: _as_utc(entry.timestamp), reverse=True)
        recent_sales = [
            RecentSale(
                id=entry.property.id,
                title=entry.property.title,
                price=entry.property.price,
                sold_at=entry.timestamp,
            )
            for entry in newest_first[:RECENT_SALES_LIMIT]
        ]

        return SaleStats(
            period=period,
            total_sales=len(recent),
            total_value=total_value,
            average_price=total_value / len(recent),
            sales_by_type=dict(by_type),
            sales_by_month=dict(by_month),
            recent_sales=recent_sales,
        )
