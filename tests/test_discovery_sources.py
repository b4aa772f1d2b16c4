"""Tests for model discovery strategies."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from conftest import GROQ_KEY, OPENROUTER_KEY

from nexuscat.core.cache import TTLCache
from nexuscat.credentials.resolver import CredentialResolver
from nexuscat.credentials.store import MemorySecretStore
from nexuscat.discovery.openai import OpenAICompatibleModelSource
from nexuscat.discovery.static import (
    ANTHROPIC_MODELS,
    OPENROUTER_FALLBACK_MODELS,
    StaticModelSource,
)
from nexuscat.exceptions import (
    AuthenticationError,
    DiscoveryConnectionError,
    DiscoveryError,
    ProviderServerError,
    RateLimitError,
)

# ============================================================================
# Fixtures
# ============================================================================


def make_resolver(environ, clock) -> CredentialResolver:
    return CredentialResolver(
        MemorySecretStore(environ=environ),
        availability_cache=TTLCache(600, clock),
        resolved_cache=TTLCache(600, clock),
        clock=clock,
    )


@pytest.fixture
def groq_resolver(clock) -> CredentialResolver:
    return make_resolver({"AI_KEY_GROQ": GROQ_KEY}, clock)


@pytest.fixture
def openrouter_resolver(clock) -> CredentialResolver:
    return make_resolver({"AI_KEY_OPENROUTER": OPENROUTER_KEY}, clock)


@pytest.fixture
def empty_resolver(clock) -> CredentialResolver:
    return make_resolver({}, clock)


def mock_http_client(mock_client_class, response=None, error=None):
    """Wire a patched httpx.AsyncClient to return ``response`` or raise ``error``."""
    mock_client = AsyncMock()
    if error is not None:
        mock_client.get = AsyncMock(side_effect=error)
    else:
        mock_client.get = AsyncMock(return_value=response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client_class.return_value = mock_client
    return mock_client


def ok_response(data):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = data
    return response


def error_response(status_code, body=None):
    return httpx.Response(
        status_code,
        json=body if body is not None else {"error": "nope"},
        request=httpx.Request("GET", "https://api.groq.com/openai/v1/models"),
    )


# ============================================================================
# OpenAI-compatible source
# ============================================================================


class TestOpenAICompatibleModelSource:
    """Tests for the /models listing strategy."""

    @pytest.mark.asyncio
    async def test_list_models_success(self, groq_resolver):
        """Test successful model listing maps fields to descriptors."""
        source = OpenAICompatibleModelSource("Groq")
        data = {
            "data": [
                {"id": "llama3-70b-8192", "context_window": 8192, "owned_by": "Meta"},
                {"id": "mixtral-8x7b-32768", "context_window": 32768},
                {"id": "retired-model", "active": False},
            ]
        }

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock_http_client(mock_client_class, ok_response(data))
            models = await source.discover_models(groq_resolver)

        assert [m.model_name for m in models] == ["llama3-70b-8192", "mixtral-8x7b-32768"]
        assert models[1].max_context_window == 32768
        assert models[0].provider_name == "Groq"

        call_url = mock_client.get.call_args[0][0]
        headers = mock_client.get.call_args[1]["headers"]
        assert call_url == "https://api.groq.com/openai/v1/models"
        assert headers["Authorization"] == f"Bearer {GROQ_KEY}"

    @pytest.mark.asyncio
    async def test_openrouter_metadata(self, openrouter_resolver):
        """Test OpenRouter context, completion limit and modality are read."""
        source = OpenAICompatibleModelSource("OpenRouter")
        data = {
            "data": [
                {
                    "id": "openai/gpt-4o",
                    "name": "OpenAI: GPT-4o",
                    "context_length": 128000,
                    "architecture": {"modality": "text+image->text"},
                    "top_provider": {"max_completion_tokens": 16384},
                }
            ]
        }

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, ok_response(data))
            models = await source.discover_models(openrouter_resolver)

        assert len(models) == 1
        assert models[0].display_name == "OpenAI: GPT-4o"
        assert models[0].max_context_window == 128000
        assert models[0].max_tokens == 16384
        assert models[0].supports_vision is True

    @pytest.mark.asyncio
    async def test_no_credential_skips_http(self, empty_resolver):
        """Test nothing is fetched when the provider has no usable key."""
        source = OpenAICompatibleModelSource("Groq")

        with patch("httpx.AsyncClient") as mock_client_class:
            models = await source.discover_models(empty_resolver)

        assert models == []
        mock_client_class.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,error_cls",
        [(401, AuthenticationError), (429, RateLimitError), (503, ProviderServerError)],
    )
    async def test_http_error_raises(self, groq_resolver, caplog, status_code, error_cls):
        """Test error statuses raise the matching discovery error."""
        source = OpenAICompatibleModelSource("Groq")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, error_response(status_code))
            with caplog.at_level(logging.ERROR):
                with pytest.raises(error_cls) as exc_info:
                    await source.discover_models(groq_resolver)

        assert exc_info.value.provider == "Groq"
        assert exc_info.value.status_code == status_code
        assert "HTTP error" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, groq_resolver, caplog):
        """Test transport errors raise DiscoveryConnectionError."""
        source = OpenAICompatibleModelSource("Groq")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, error=httpx.RequestError("Connection refused"))
            with caplog.at_level(logging.ERROR):
                with pytest.raises(DiscoveryConnectionError):
                    await source.discover_models(groq_resolver)

        assert "Request error" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, openrouter_resolver):
        """Test the curated fallback is used when listing fails."""
        source = OpenAICompatibleModelSource(
            "OpenRouter", fallback=StaticModelSource("OpenRouter")
        )

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, error=httpx.RequestError("Connection refused"))
            models = await source.discover_models(openrouter_resolver)

        assert len(models) == len(OPENROUTER_FALLBACK_MODELS)
        assert models[0].model_name == "anthropic/claude-3-opus"

    @pytest.mark.asyncio
    async def test_fallback_on_non_json_body(self, openrouter_resolver):
        """Test a 200 response that is not JSON falls back to the curated list."""
        source = OpenAICompatibleModelSource(
            "OpenRouter", fallback=StaticModelSource("OpenRouter")
        )
        response = httpx.Response(
            200,
            text="<html>maintenance</html>",
            request=httpx.Request("GET", "https://openrouter.ai/api/v1/models"),
        )

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, response)
            models = await source.discover_models(openrouter_resolver)

        assert len(models) == len(OPENROUTER_FALLBACK_MODELS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            ["openai/gpt-4o"],
            {"data": "openai/gpt-4o"},
            {"data": ["openai/gpt-4o"]},
            {"data": [{"id": "openai/gpt-4o", "context_length": "lots"}]},
        ],
    )
    async def test_malformed_listing_raises_discovery_error(
        self, groq_resolver, caplog, payload
    ):
        """Test unexpected payload shapes raise DiscoveryError for the provider."""
        source = OpenAICompatibleModelSource("Groq")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_http_client(mock_client_class, ok_response(payload))
            with caplog.at_level(logging.ERROR):
                with pytest.raises(DiscoveryError) as exc_info:
                    await source.discover_models(groq_resolver)

        assert exc_info.value.provider == "Groq"
        assert "Malformed model listing" in caplog.text

    @pytest.mark.asyncio
    async def test_custom_base_url(self, groq_resolver):
        """Test a custom base_url is used for the listing call."""
        source = OpenAICompatibleModelSource("Groq", base_url="https://proxy.local/v1/")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = mock_http_client(mock_client_class, ok_response({"data": []}))
            await source.discover_models(groq_resolver)

        assert mock_client.get.call_args[0][0] == "https://proxy.local/v1/models"

    def test_supports_discovery(self):
        assert OpenAICompatibleModelSource("OpenAI").supports_discovery() is True


# ============================================================================
# Static source
# ============================================================================


class TestStaticModelSource:
    """Tests for curated model registries."""

    @pytest.mark.asyncio
    async def test_openrouter_curated_list(self, openrouter_resolver):
        """Test the curated OpenRouter list with its advertised limits."""
        source = StaticModelSource("OpenRouter")

        models = await source.discover_models(openrouter_resolver)

        opus = next(m for m in models if m.model_name == "anthropic/claude-3-opus")
        assert opus.max_context_window == 200000
        assert opus.max_tokens == 4096
        assert opus.supports_vision is True
        assert opus.provider_name == "OpenRouter"

    @pytest.mark.asyncio
    async def test_anthropic_requires_credential(self, empty_resolver):
        """Test curated models are hidden without a usable key."""
        source = StaticModelSource("Anthropic")

        assert await source.discover_models(empty_resolver) == []

    @pytest.mark.asyncio
    async def test_anthropic_with_key(self, clock):
        resolver = make_resolver({"AI_KEY_ANTHROPIC": "sk-ant-REDACTED"}, clock)
        source = StaticModelSource("Anthropic")

        models = await source.discover_models(resolver)

        assert len(models) == len(ANTHROPIC_MODELS)

    @pytest.mark.asyncio
    async def test_unknown_provider(self, groq_resolver, caplog):
        """Test providers without a registry return no models."""
        source = StaticModelSource("Groq")

        with caplog.at_level(logging.WARNING):
            assert await source.discover_models(groq_resolver) == []

        assert "No curated model registry" in caplog.text

    def test_supports_discovery(self):
        assert StaticModelSource("Anthropic").supports_discovery() is False
