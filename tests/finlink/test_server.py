"""Tests for the HTTP boundary."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from finlink.config import FinlinkSettings
from finlink.exceptions import NotFoundError, ProviderError
from finlink.models import ConnectionRecord
from finlink.server import create_app
from finlink.storage.repositories import Store


@pytest.fixture
def http(provider: Any, store: Store) -> TestClient:
    """Test client over an app wired to the stub provider and the fresh store."""
    app = create_app(FinlinkSettings(), provider=provider, store=store)
    return TestClient(app)


class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.unit
    def test_health(self, http: TestClient) -> None:
        response = http.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestWebhookEndpoint:
    """Tests for POST /api/webhook."""

    @pytest.mark.unit
    def test_handled_event_returns_200(
        self,
        http: TestClient,
        provider: Any,
        store: Store,
        item_payload: Any,
        account_payload: Any,
    ) -> None:
        provider.items["conn-1"] = item_payload("conn-1")
        provider.accounts["conn-1"] = [account_payload("a1")]

        response = http.post(
            "/api/webhook",
            json={"event": "item/updated", "eventId": "evt-1", "itemId": "conn-1"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "processed": True}
        assert store.connections.get_by_id("conn-1") is not None
        assert store.accounts.get_by_id("a1") is not None

    @pytest.mark.unit
    def test_unknown_event_is_acknowledged(self, http: TestClient, provider: Any) -> None:
        response = http.post(
            "/api/webhook", json={"event": "something/new", "eventId": "evt-2"}
        )

        assert response.status_code == 200
        assert provider.calls == []

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "body",
        [
            {"eventId": "evt-1", "itemId": "conn-1"},
            {"event": "item/updated", "itemId": "conn-1"},
            {"event": "item/updated", "eventId": "evt-1"},
            ["item/updated"],
        ],
    )
    def test_invalid_envelope_returns_400(
        self, http: TestClient, provider: Any, body: Any
    ) -> None:
        response = http.post("/api/webhook", json=body)

        assert response.status_code == 400
        assert response.json()["received"] is False
        assert provider.calls == []

    @pytest.mark.unit
    def test_non_json_body_returns_400(self, http: TestClient) -> None:
        response = http.post(
            "/api/webhook",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    @pytest.mark.unit
    def test_handler_failure_returns_500(
        self, http: TestClient, provider: Any, item_payload: Any
    ) -> None:
        provider.items["conn-1"] = item_payload("conn-1")
        provider.failures["fetch_accounts"] = ProviderError("down", status_code=503)

        response = http.post(
            "/api/webhook",
            json={"event": "item/updated", "eventId": "evt-3", "itemId": "conn-1"},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["received"] is True
        assert body["processed"] is False

    @pytest.mark.unit
    def test_status_event_for_unknown_connection_returns_200(
        self, http: TestClient, store: Store
    ) -> None:
        response = http.post(
            "/api/webhook",
            json={"event": "item/error", "eventId": "evt-4", "itemId": "ghost"},
        )

        assert response.status_code == 200
        assert store.connections.count() == 0

    @pytest.mark.unit
    def test_custom_webhook_path(self, provider: Any, store: Store) -> None:
        settings = FinlinkSettings(server={"webhook_path": "/hooks/pluggy"})
        http = TestClient(create_app(settings, provider=provider, store=store))

        response = http.post(
            "/hooks/pluggy", json={"event": "something/new", "eventId": "evt-5"}
        )

        assert response.status_code == 200


class TestDeleteItem:
    """Tests for DELETE /api/items/{item_id}."""

    @pytest.mark.unit
    def test_deletes_at_provider_and_locally(
        self, http: TestClient, provider: Any, store: Store
    ) -> None:
        store.connections.upsert(ConnectionRecord(item_id="conn-1"))

        response = http.delete("/api/items/conn-1")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["itemId"] == "conn-1"
        assert body["warnings"] == []
        assert provider.deleted == ["conn-1"]
        assert store.connections.get_by_id("conn-1") is None

    @pytest.mark.unit
    def test_item_gone_at_provider_is_a_warning(
        self, http: TestClient, provider: Any, store: Store
    ) -> None:
        store.connections.upsert(ConnectionRecord(item_id="conn-1"))
        provider.failures["delete_connection"] = NotFoundError("connection", "conn-1")

        response = http.delete("/api/items/conn-1")

        assert response.status_code == 200
        assert len(response.json()["warnings"]) == 1
        assert store.connections.get_by_id("conn-1") is None

    @pytest.mark.unit
    def test_item_unknown_everywhere(self, http: TestClient, provider: Any) -> None:
        provider.failures["delete_connection"] = NotFoundError("connection", "ghost")

        response = http.delete("/api/items/ghost")

        assert response.status_code == 200
        assert len(response.json()["warnings"]) == 2
