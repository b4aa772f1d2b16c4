"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from nexuscat.api.deps import get_catalog, get_registry, get_resolver
from nexuscat.core.config import Settings
from nexuscat.core.security import SecretEncryption
from nexuscat.discovery.base import ModelDescriptor
from nexuscat.discovery.registry import StrategyRegistry
from nexuscat.main import create_app

API = "/api/v1"


def descriptor(provider="Groq", model="llama3-70b", **kwargs) -> ModelDescriptor:
    return ModelDescriptor(provider_name=provider, model_name=model, **kwargs)


@pytest.fixture
def catalog():
    catalog = MagicMock()
    catalog.get_all = AsyncMock(return_value=[descriptor()])
    catalog.get_all_unfiltered = AsyncMock(
        return_value=[descriptor(), descriptor("Anthropic", "claude-3-opus")]
    )
    catalog.get_favorites = AsyncMock(return_value=[])
    catalog.discover_and_merge = AsyncMock(return_value=4)
    catalog.get_current = AsyncMock(return_value=descriptor(use_count=1))
    catalog.set_current = AsyncMock(return_value=True)
    catalog.set_favorite = AsyncMock(return_value=True)
    catalog.set_default = AsyncMock(return_value=True)
    catalog.reconcile_duplicates = AsyncMock(return_value=2)
    return catalog


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.masked = AsyncMock(return_value=(True, "gsk...1234"))
    resolver.has_usable_credential = AsyncMock(return_value=True)
    resolver.save = AsyncMock(return_value=True)
    resolver.save_model_specific = AsyncMock(return_value=True)
    resolver.delete = AsyncMock(return_value=True)
    return resolver


@pytest.fixture
def client(catalog, resolver) -> TestClient:
    """Create a test client with service dependencies overridden."""
    settings = Settings(encryption_key=SecretEncryption.generate_key())
    app = create_app(settings, services=MagicMock())

    registry = StrategyRegistry()
    for name in ("Groq", "OpenAI"):
        source = MagicMock()
        source.provider = name
        registry.register(source)

    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_resolver] = lambda: resolver
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app)


class TestHealth:
    def test_root_and_health(self, client):
        assert client.get("/").json() == {"status": "ok"}
        assert client.get("/health").json() == {"status": "healthy"}


class TestModelsAPI:
    """Tests for /models endpoints."""

    def test_list_models(self, client):
        response = client.get(f"{API}/models")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["model_name"] == "llama3-70b"
        assert data["items"][0]["max_tokens"] == 4096

    def test_list_all_models(self, client):
        response = client.get(f"{API}/models/all")

        assert response.json()["total"] == 2

    def test_discover(self, client, catalog):
        response = client.post(f"{API}/models/discover")

        assert response.status_code == 200
        assert response.json() == {"inserted": 4}
        catalog.discover_and_merge.assert_awaited_once()

    def test_get_current(self, client):
        response = client.get(f"{API}/models/current")

        assert response.status_code == 200
        assert response.json()["use_count"] == 1

    def test_get_current_none(self, client, catalog):
        catalog.get_current.return_value = None

        assert client.get(f"{API}/models/current").status_code == 404

    def test_set_current(self, client, catalog):
        response = client.put(
            f"{API}/models/current",
            json={"provider_name": "Groq", "model_name": "llama3-70b"},
        )

        assert response.status_code == 200
        model = catalog.set_current.call_args[0][0]
        assert (model.provider_name, model.model_name) == ("Groq", "llama3-70b")

    def test_set_current_validation(self, client):
        response = client.put(f"{API}/models/current", json={"provider_name": "Groq", "model_name": ""})

        assert response.status_code == 422

    def test_set_current_failure(self, client, catalog):
        catalog.set_current.return_value = False

        response = client.put(
            f"{API}/models/current",
            json={"provider_name": "Groq", "model_name": "llama3-70b"},
        )

        assert response.status_code == 500

    def test_set_favorite(self, client, catalog):
        response = client.put(
            f"{API}/models/favorite",
            json={"provider_name": "Groq", "model_name": "new-model", "is_favorite": True},
        )

        assert response.status_code == 204
        catalog.set_favorite.assert_awaited_once_with("Groq", "new-model", True)

    def test_set_default_missing(self, client, catalog):
        catalog.set_default.return_value = False

        response = client.put(
            f"{API}/models/default", json={"provider_name": "Groq", "model_name": "missing"}
        )

        assert response.status_code == 404

    def test_reconcile(self, client):
        response = client.post(f"{API}/models/reconcile")

        assert response.json() == {"removed": 2}


class TestCredentialsAPI:
    """Tests for /credentials endpoints."""

    def test_list_credentials(self, client):
        response = client.get(f"{API}/credentials")

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["provider"] for item in items] == ["Groq", "OpenAI"]
        assert items[0]["masked_key"] == "gsk...1234"

    def test_save_credential(self, client, resolver):
        response = client.put(
            f"{API}/credentials/Groq", json={"api_key": "gsk_abcdefghijklmnop1234"}
        )

        assert response.status_code == 200
        assert "gsk_abcdefghijklmnop1234" not in response.text
        resolver.save.assert_awaited_once_with("Groq", "gsk_abcdefghijklmnop1234")

    def test_save_model_specific_credential(self, client, resolver):
        response = client.put(
            f"{API}/credentials/Groq",
            json={"api_key": "gsk_abcdefghijklmnop1234", "model_name": "llama3-70b"},
        )

        assert response.status_code == 200
        resolver.save_model_specific.assert_awaited_once_with(
            "Groq", "llama3-70b", "gsk_abcdefghijklmnop1234"
        )

    def test_save_rejected(self, client, resolver):
        resolver.save.return_value = False

        response = client.put(f"{API}/credentials/Groq", json={"api_key": "bad"})

        assert response.status_code == 422

    def test_delete_credential(self, client, resolver):
        response = client.delete(f"{API}/credentials/Groq")

        assert response.status_code == 204
        resolver.delete.assert_awaited_once_with("Groq")
