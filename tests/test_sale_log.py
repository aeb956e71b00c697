import json
from datetime import datetime, timedelta, timezone

import pytest

from schemas.sales import SaleLogEntry, SoldPropertyRecord
from services.sale_log import SaleLog

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def entry(index: int, *, days_ago: float = 0, price: float = 100000.0, property_type: str = "house"):
    return SaleLogEntry(
        timestamp=NOW - timedelta(days=days_ago),
        action="marked-as-sold",
        property=SoldPropertyRecord(
            id=f"property-{index}",
            title=f"Sold Listing {index}",
            price=price,
            property_type=property_type,
            media_ids=[f"estate-manager/properties/property-{index}"],
        ),
    )


def test_append_writes_one_json_line_per_entry(tmp_path):
    path = tmp_path / "logs" / "sold.log"

    with SaleLog(path) as log:
        assert log.append(entry(1)) is True
        assert log.append(entry(2)) is True

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["action"] == "marked-as-sold"
    assert first["property"]["id"] == "property-1"
    assert first["property"]["cloudinaryPublicIds"] == ["estate-manager/properties/property-1"]


def test_entries_read_back_in_append_order(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    for index in range(5):
        log.append(entry(index))
    log.close()

    entries = log.read_entries()

    assert [item.property.id for item in entries] == [f"property-{index}" for index in range(5)]
    assert entries[0].property.media_ids == ["estate-manager/properties/property-0"]


def test_append_opens_log_lazily(tmp_path):
    log = SaleLog(tmp_path / "nested" / "sold.log")
    assert log.is_open is False

    assert log.append(entry(1)) is True
    assert log.is_open is True
    log.close()
    assert log.is_open is False


def test_append_failure_returns_false(tmp_path):
    directory = tmp_path / "not-a-file"
    directory.mkdir()

    log = SaleLog(directory)

    assert log.append(entry(1)) is False


def test_missing_log_yields_empty_stats(tmp_path):
    log = SaleLog(tmp_path / "missing.log")

    stats = log.stats_since(30, now=NOW)

    assert log.read_entries() == []
    assert stats.period == "Last 30 days"
    assert stats.total_sales == 0
    assert stats.total_value == 0
    assert stats.average_price == 0
    assert stats.recent_sales == []


def test_corrupt_lines_are_skipped(tmp_path):
    path = tmp_path / "sold.log"
    log = SaleLog(path)
    log.append(entry(1))
    log.close()
    with path.open("a", encoding="utf-8") as handle:
        handle.write("{not json\n")
        handle.write("\n")
        handle.write(json.dumps({"action": "marked-as-sold"}) + "\n")
    log.append(entry(2))
    log.close()

    entries = log.read_entries()

    assert [item.property.id for item in entries] == ["property-1", "property-2"]


def test_stats_aggregate_entries_inside_window(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    log.append(entry(1, days_ago=1, price=200000.0))
    log.append(entry(2, days_ago=3, price=400000.0, property_type="condo"))
    log.append(entry(3, days_ago=45, price=999999.0))
    log.close()

    stats = log.stats_since(30, now=NOW)

    assert stats.total_sales == 2
    assert stats.total_value == 600000.0
    assert stats.average_price == 300000.0
    assert stats.sales_by_type == {"house": 1, "condo": 1}
    assert stats.sales_by_month == {"2026-03": 2}
    assert [sale.id for sale in stats.recent_sales] == ["property-1", "property-2"]


def test_zero_day_window_counts_nothing_from_the_past(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    log.append(entry(1, days_ago=0.5))
    log.close()

    stats = log.stats_since(0, now=NOW)

    assert stats.period == "Last 0 days"
    assert stats.total_sales == 0
    assert stats.average_price == 0


def test_recent_sales_are_newest_first_and_capped(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    for index in range(12):
        log.append(entry(index, days_ago=12 - index))
    log.close()

    stats = log.stats_since(30, now=NOW)

    assert stats.total_sales == 12
    assert len(stats.recent_sales) == 10
    assert stats.recent_sales[0].id == "property-11"
    assert stats.recent_sales[-1].id == "property-2"


def test_stats_serialize_with_camel_case_keys(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    log.append(entry(1, days_ago=2))
    log.close()

    payload = log.stats_since(30, now=NOW).model_dump(mode="json", by_alias=True)

    assert set(payload) == {
        "period",
        "totalSales",
        "totalValue",
        "averagePrice",
        "salesByType",
        "salesByMonth",
        "recentSales",
    }
    assert set(payload["recentSales"][0]) == {"id", "title", "price", "soldAt"}


@pytest.mark.parametrize("days", [1, 7, 30])
def test_window_boundary_is_inclusive_of_recent_entries(tmp_path, days):
    log = SaleLog(tmp_path / "sold.log")
    log.append(entry(1, days_ago=days - 0.01))
    log.append(entry(2, days_ago=days + 0.01))
    log.close()

    stats = log.stats_since(days, now=NOW)

    assert [sale.id for sale in stats.recent_sales] == ["property-1"]


def test_undecodable_line_is_skipped(tmp_path):
    path = tmp_path / "sold.log"
    log = SaleLog(path)
    log.append(entry(1, days_ago=1))
    log.close()
    with path.open("ab") as handle:
        handle.write(b'{"broken": "caf\xc3"}\n')
    log.append(entry(2, days_ago=1))
    log.close()

    stats = log.stats_since(30, now=NOW)

    assert stats.total_sales == 2
    assert [sale.id for sale in stats.recent_sales] == ["property-1", "property-2"]


def test_window_beyond_calendar_range_covers_whole_log(tmp_path):
    log = SaleLog(tmp_path / "sold.log")
    log.append(entry(1, days_ago=400))
    log.close()

    stats = log.stats_since(1_000_000, now=NOW)

    assert stats.period == "Last 1000000 days"
    assert stats.total_sales == 1
