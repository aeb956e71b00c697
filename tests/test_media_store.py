import hashlib

import httpx
import pytest

from services.media_store import (
    CloudinaryMediaStore,
    ImageUpload,
    MediaStoreConfig,
    build_transformation,
    delete_images,
    validate_images,
)
from utils.error_handling import RemoteMediaError, ValidationError

CONFIG = MediaStoreConfig(cloud_name="demo", api_key="key", api_secret="secret")
IMAGE = ImageUpload(filename="front.jpg", content_type="image/jpeg", data=b"\xff\xd8\xff")


def make_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CloudinaryMediaStore(CONFIG, client=client)


def test_delivery_urls():
    store = CloudinaryMediaStore(CONFIG)

    assert store.url("sample") == "https://res.cloudinary.com/demo/image/upload/sample"
    assert (
        store.url("estate-manager/properties/p-1")
        == "https://res.cloudinary.com/demo/image/upload/v1/estate-manager/properties/p-1"
    )
    assert (
        store.optimized_url("sample")
        == "https://res.cloudinary.com/demo/image/upload/c_fill,f_auto,h_600,q_auto,w_800/sample"
    )


def test_variants_cover_three_sizes_and_original():
    store = CloudinaryMediaStore(CONFIG)

    variants = store.variants("sample")

    assert set(variants) == {"thumbnail", "medium", "large", "original"}
    assert "h_200" in variants["thumbnail"] and "w_300" in variants["thumbnail"]
    assert "w_1200" in variants["large"]
    assert variants["original"] == "https://res.cloudinary.com/demo/image/upload/sample"


def test_build_transformation_skips_empty_options():
    assert build_transformation({"width": 100, "crop": None, "quality": "auto"}) == "q_auto,w_100"


def test_signature_uses_sorted_params_and_secret():
    store = CloudinaryMediaStore(CONFIG)

    signature = store.sign({"timestamp": 1315060510, "public_id": "sample_image", "folder": ""})

    expected = hashlib.sha1(b"public_id=sample_image&timestamp=1315060510secret").hexdigest()
    assert signature == expected


def test_validate_images():
    validate_images([IMAGE])

    with pytest.raises(ValidationError) as excinfo:
        validate_images([ImageUpload(filename="a.txt", content_type="text/plain", data=b"x")])
    assert excinfo.value.errors[0].message == "Only image files are allowed!"

    too_big = ImageUpload(filename="big.jpg", content_type="image/jpeg", data=b"0" * (10 * 1024 * 1024 + 1))
    with pytest.raises(ValidationError):
        validate_images([too_big])


@pytest.mark.asyncio
async def test_upload_posts_signed_request():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "public_id": "estate-manager/properties/property-1",
                "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/estate-manager/properties/property-1.jpg",
            },
        )

    store = make_store(handler)
    await store.start()

    uploaded = await store.upload(IMAGE, public_id="property-1")

    assert uploaded.public_id == "estate-manager/properties/property-1"
    assert uploaded.url.endswith("property-1.jpg")
    assert str(requests[0].url) == "https://api.cloudinary.com/v1_1/demo/image/upload"
    body = requests[0].content
    assert b'name="signature"' in body
    assert b'name="api_key"' in body
    assert b"estate-manager/properties" in body


@pytest.mark.asyncio
async def test_delete_accepts_ok_and_not_found():
    results = iter(["ok", "not found"])

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1_1/demo/image/destroy"
        return httpx.Response(200, json={"result": next(results)})

    store = make_store(handler)
    await store.start()

    await store.delete("a")
    await store.delete("b")


@pytest.mark.asyncio
async def test_delete_raises_on_remote_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "boom"}})

    store = make_store(handler)
    await store.start()

    with pytest.raises(RemoteMediaError) as excinfo:
        await store.delete("a")
    assert excinfo.value.public_id == "a"


@pytest.mark.asyncio
async def test_unconfigured_store_refuses_requests():
    store = CloudinaryMediaStore(MediaStoreConfig())
    await store.start()

    with pytest.raises(RemoteMediaError):
        await store.upload(IMAGE, public_id="property-1")
    await store.stop()


@pytest.mark.asyncio
async def test_delete_images_returns_failures_without_raising(media_store):
    media_store.failing.add("b")

    failed = await delete_images(media_store, ["a", "b", "c"], property_id="p-1")

    assert failed == ["b"]
    assert media_store.deleted == ["a", "b", "c"]
