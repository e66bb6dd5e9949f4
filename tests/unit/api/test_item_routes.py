"""Tests for the item router and its cache-aside behavior over HTTP."""

from unittest.mock import patch

from src.identity_broker.entities.service.item import ItemRepository


def _create(client, name="alpha", description=None) -> dict:
    response = client.post("/api/test/items", json={"name": name, "description": description})
    assert response.status_code == 201
    return response.json()["data"]


class TestItemRoutes:
    def test_create_and_read(self, client):
        created = _create(client, description="first")

        assert created["name"] == "alpha"
        assert created["description"] == "first"

        listed = client.get("/api/test/items").json()["data"]
        assert [item["id"] for item in listed] == [created["id"]]

        fetched = client.get(f"/api/test/items/{created['id']}").json()
        assert fetched["success"] is True
        assert fetched["data"]["name"] == "alpha"

    def test_update_is_visible_on_next_read(self, client):
        created = _create(client)
        client.get(f"/api/test/items/{created['id']}")
        client.get("/api/test/items")

        response = client.put(
            f"/api/test/items/{created['id']}", json={"name": "beta", "description": "second"}
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Item updated"
        assert client.get(f"/api/test/items/{created['id']}").json()["data"]["name"] == "beta"
        assert client.get("/api/test/items").json()["data"][0]["name"] == "beta"

    def test_delete(self, client):
        created = _create(client)
        client.get("/api/test/items")

        response = client.delete(f"/api/test/items/{created['id']}")

        assert response.status_code == 200
        assert response.json()["message"] == "Item deleted"
        assert client.get("/api/test/items").json()["data"] == []
        assert client.get(f"/api/test/items/{created['id']}").status_code == 404

    def test_cached_reads_skip_the_store(self, client):
        created = _create(client)
        client.get(f"/api/test/items/{created['id']}")

        with patch.object(ItemRepository, "get", side_effect=AssertionError("store read")):
            response = client.get(f"/api/test/items/{created['id']}")

        assert response.status_code == 200

    def test_missing_item(self, client):
        response = client.get("/api/test/items/404")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "ITEM_NOT_FOUND"
        assert body["path"] == "/api/test/items/404"

    def test_blank_name_rejected(self, client):
        response = client.post("/api/test/items", json={"name": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["validation_errors"][0]["field"] == "name"

    def test_non_integer_id_rejected(self, client):
        response = client.get("/api/test/items/abc")

        assert response.status_code == 400
        assert response.json()["validation_errors"][0]["field"] == "path.item_id"

    def test_clear_cache_counts_item_entries(self, client):
        _create(client, "alpha")
        _create(client, "beta")
        client.get("/api/test/items")

        response = client.delete("/api/test/cache")

        assert response.status_code == 200
        assert response.json()["data"] == {"removed": 2}
        assert len(client.get("/api/test/items").json()["data"]) == 2
