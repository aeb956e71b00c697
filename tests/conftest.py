import os
from typing import Dict, List

import httpx
import pytest

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

pytest.importorskip("sqlalchemy")

from db import get_session_factory, init_db, reset_database_state  # noqa: E402
from services.media_store import UploadedImage  # noqa: E402
from services.sale_log import SaleLog  # noqa: E402
from utils.error_handling import RemoteMediaError  # noqa: E402


class StubMediaStore:
    """In-memory stand-in for the Cloudinary client."""

    def __init__(self) -> None:
        self.uploaded: List[str] = []
        self.deleted: List[str] = []
        self.failing: set = set()

    async def upload(self, image, *, public_id: str) -> UploadedImage:
        stored_id = f"estate-manager/properties/{public_id}"
        self.uploaded.append(stored_id)
        return UploadedImage(public_id=stored_id, url=f"https://cdn.example.com/{stored_id}.jpg")

    async def delete(self, public_id: str) -> None:
        self.deleted.append(public_id)
        if public_id in self.failing:
            raise RemoteMediaError("Media store unavailable", public_id=public_id)

    def url(self, public_id: str, **options) -> str:
        return f"https://cdn.example.com/{public_id}"

    def variants(self, public_id: str) -> Dict[str, str]:
        return {
            "thumbnail": f"https://cdn.example.com/w_300/{public_id}",
            "medium": f"https://cdn.example.com/w_600/{public_id}",
            "large": f"https://cdn.example.com/w_1200/{public_id}",
            "original": f"https://cdn.example.com/{public_id}",
        }


def property_payload(**overrides):
    payload = {
        "title": "Modern Downtown Apartment",
        "address": "123 Main Street, Downtown, CA 90210",
        "description": "A beautiful modern apartment with stunning city views.",
        "price": 450000,
        "bedrooms": 2,
        "bathrooms": 2,
        "squareFootage": 1200,
        "yearBuilt": 2020,
        "propertyType": "apartment",
        "features": ["balcony", "city view"],
        "location": {
            "coordinates": [-118.2437, 34.0522],
            "city": "Los Angeles",
            "state": "CA",
            "zipCode": "90210",
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
async def session_factory():
    await reset_database_state()
    await init_db()
    yield get_session_factory()
    await reset_database_state()


@pytest.fixture()
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def media_store():
    return StubMediaStore()


@pytest.fixture()
def sale_log(tmp_path):
    log = SaleLog(tmp_path / "logs" / "sold-properties.log").open()
    yield log
    log.close()


@pytest.fixture()
async def client(session_factory, media_store, sale_log):
    from main import app

    app.state.media_store = media_store
    app.state.sale_log = sale_log
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
