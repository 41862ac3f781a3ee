from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from conftest import ORIGINAL_BUCKET, SECRET, TRANSFORMED_BUCKET, FakeStores, make_image
from image_delivery.main import create_app

AUTH = {"x-origin-secret-header": SECRET}


@pytest.fixture
def client(settings, stores, s3) -> Generator[TestClient, None, None]:
    with TestClient(create_app(settings, stores)) as c:
        yield c


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "image-delivery"}


def test_transform_over_http(client: TestClient, s3) -> None:
    response = client.get("/images/a.jpg/format=png,width=100", headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.headers["server-timing"].count("dur=") == 3
    assert response.json() == {
        "bucket": TRANSFORMED_BUCKET,
        "key": "images/a.jpg/format=png,width=100",
        "transformed": True,
    }
    assert s3.puts[0]["ContentType"] == "image/png"


def test_missing_secret_over_http(client: TestClient) -> None:
    response = client.get("/images/a.jpg/width=100")
    assert response.status_code == 403
    assert "server-timing" not in response.headers


def test_non_get_over_http(client: TestClient) -> None:
    response = client.post("/images/a.jpg/width=100", headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "Bad Request"}


def test_oversized_over_http(settings_factory) -> None:
    settings = settings_factory(max_image_size=100)
    stores = FakeStores(settings)
    stores.default.add(ORIGINAL_BUCKET, "images/a.jpg", make_image(), "image/jpeg")
    with TestClient(create_app(settings, stores)) as c:
        response = c.get("/images/a.jpg/original", headers=AUTH)
    assert response.status_code == 413
    assert response.json()["key"] == "images/a.jpg"


def test_edge_emulation_normalizes_query(settings_factory) -> None:
    settings = settings_factory(emulate_edge=True)
    stores = FakeStores(settings)
    stores.default.add(ORIGINAL_BUCKET, "images/a.jpg", make_image(), "image/jpeg")

    with TestClient(create_app(settings, stores)) as c:
        response = c.get(
            "/images/a.jpg",
            params={"format": "auto", "width": "120", "height": "-1"},
            headers={**AUTH, "accept": "image/avif,image/webp"},
        )

    assert response.status_code == 200
    assert response.json()["key"] == "images/a.jpg/format=webp,width=120"
    assert stores.default.puts[0]["ContentType"] == "image/webp"
