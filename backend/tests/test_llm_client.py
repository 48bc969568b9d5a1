"""Tests for the text generation client and provider catalog."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from repowatch.core.exceptions import (
    CredentialMissingError,
    ExternalAPIError,
    ProviderUnimplementedError,
    ReportGenerationError,
)
from repowatch.external.llm_client import (
    PROVIDER_CATALOG,
    LLMClient,
    LLMProvider,
    ProviderConfig,
    ProviderCredential,
    fetch_openrouter_models,
    max_tokens_for,
    parse_custom_models,
    sort_openrouter_models,
)
from repowatch.reporting.types import DetailLevel
from repowatch.services.credential_resolver import CredentialResolver

ENV = {
    "OPENAI_API_KEY": "sk-env-openai",
    "DEEPSEEK_API_KEY": "sk-env-deepseek",
    "OPENROUTER_API_KEY": "sk-env-openrouter",
    "ANTHROPIC_API_KEY": "sk-env-anthropic",
}


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
    )


@pytest.fixture()
def openai_mock():
    """Patch ``AsyncOpenAI`` and yield the mocked client instance."""
    with patch("repowatch.external.llm_client.AsyncOpenAI") as cls:
        instance = MagicMock()
        instance.chat.completions.create = AsyncMock(return_value=_completion("Report text"))
        instance.close = AsyncMock()
        cls.return_value = instance
        instance.factory = cls
        yield instance


def _client(provider: str = "openai", model: str = "gpt-4o-mini", **kwargs) -> LLMClient:
    return LLMClient(
        ProviderConfig(provider=provider, model=model, **kwargs),
        CredentialResolver(None, ENV),
    )


class TestLLMClient:
    @pytest.mark.asyncio
    async def test_complete_returns_text(self, openai_mock: MagicMock) -> None:
        async with _client() as llm:
            text = await llm.complete("Prompt", max_tokens=3000)

        assert text == "Report text"
        openai_mock.chat.completions.create.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "Prompt"}],
            max_tokens=3000,
            temperature=0.7,
        )
        openai_mock.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sdk_configured_without_retries(self, openai_mock: MagicMock) -> None:
        llm = LLMClient(
            ProviderConfig(provider="openai", model="gpt-4o"),
            CredentialResolver(None, ENV),
            timeout=12.5,
        )
        await llm.complete("Prompt")

        openai_mock.factory.assert_called_once_with(
            api_key="sk-env-openai",
            base_url=None,
            timeout=12.5,
            max_retries=0,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("provider", "base_url", "api_key"),
        [
            ("deepseek", "https://api.deepseek.com", "sk-env-deepseek"),
            ("openrouter", "https://openrouter.ai/api/v1", "sk-env-openrouter"),
        ],
    )
    async def test_openai_compatible_providers_use_default_base_url(
        self,
        openai_mock: MagicMock,
        provider: str,
        base_url: str,
        api_key: str,
    ) -> None:
        await _client(provider=provider, model="any-model").complete("Prompt")

        kwargs = openai_mock.factory.call_args.kwargs
        assert kwargs["base_url"] == base_url
        assert kwargs["api_key"] == api_key

    @pytest.mark.asyncio
    async def test_explicit_credentials_win(self, openai_mock: MagicMock) -> None:
        llm = _client(api_key="sk-explicit", base_url="https://proxy.local/v1")
        await llm.complete("Prompt")

        kwargs = openai_mock.factory.call_args.kwargs
        assert kwargs["api_key"] == "sk-explicit"
        assert kwargs["base_url"] == "https://proxy.local/v1"

    @pytest.mark.asyncio
    async def test_summarize_uses_short_settings(self, openai_mock: MagicMock) -> None:
        await _client().summarize("Summarize this")

        kwargs = openai_mock.chat.completions.create.await_args.kwargs
        assert kwargs["max_tokens"] == 150
        assert kwargs["temperature"] == 0.5

    @pytest.mark.asyncio
    async def test_backend_is_reused_across_calls(self, openai_mock: MagicMock) -> None:
        llm = _client()
        await llm.complete("one")
        await llm.summarize("two")

        openai_mock.factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_provider_errors_are_wrapped(
        self,
        openai_mock: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        openai_mock.chat.completions.create.side_effect = RuntimeError("quota exceeded for key sk-x")

        with pytest.raises(ReportGenerationError) as exc_info:
            await _client().complete("Prompt")

        assert exc_info.value.detail == "Failed to generate AI report"
        assert "quota" not in exc_info.value.detail
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "Completion failed" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   \n"])
    async def test_empty_output_is_an_error(self, openai_mock: MagicMock, content: str | None) -> None:
        openai_mock.chat.completions.create.return_value = _completion(content)

        with pytest.raises(ReportGenerationError):
            await _client().complete("Prompt")

    @pytest.mark.asyncio
    async def test_no_choices_is_an_error(self, openai_mock: MagicMock) -> None:
        openai_mock.chat.completions.create.return_value = SimpleNamespace(choices=[])

        with pytest.raises(ReportGenerationError):
            await _client().complete("Prompt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["anthropic"])
    async def test_unimplemented_provider_with_key(self, openai_mock: MagicMock, provider: str) -> None:
        with pytest.raises(ProviderUnimplementedError) as exc_info:
            await _client(provider=provider, model="claude-3-haiku").complete("Prompt")

        assert exc_info.value.status_code == 501
        assert exc_info.value.detail == "anthropic provider not yet implemented"
        openai_mock.factory.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["azure", "google", "mistral", "cohere"])
    async def test_unimplemented_provider_without_key(self, provider: str) -> None:
        with pytest.raises(CredentialMissingError) as exc_info:
            await _client(provider=provider, model="m").complete("Prompt")

        assert exc_info.value.provider == provider
        assert provider in exc_info.value.detail

    def test_unknown_provider_is_rejected(self) -> None:
        with pytest.raises(ProviderUnimplementedError) as exc_info:
            _client(provider="foo", model="bar")
        assert exc_info.value.provider == "foo"

    @pytest.mark.asyncio
    async def test_close_without_use_is_noop(self) -> None:
        llm = _client()
        await llm.close()
        assert llm.provider == LLMProvider.OPENAI
        assert llm.model == "gpt-4o-mini"


class TestProviderCatalog:
    def test_every_provider_listed(self) -> None:
        assert set(PROVIDER_CATALOG) == set(LLMProvider)

    def test_available_providers(self) -> None:
        available = {p for p, info in PROVIDER_CATALOG.items() if info.available}
        assert available == {LLMProvider.OPENAI, LLMProvider.DEEPSEEK, LLMProvider.OPENROUTER}

    def test_credential_repr_hides_key(self) -> None:
        credential = ProviderCredential(provider=LLMProvider.OPENAI, api_key="sk-secret-123")
        assert "sk-secret-123" not in repr(credential)
        assert "sk-secret-123" not in repr(
            ProviderConfig(provider="openai", model="m", api_key="sk-secret-123")
        )

    @pytest.mark.parametrize(
        ("level", "expected"),
        [(DetailLevel.SUMMARY, 1000), (DetailLevel.DETAILED, 3000), (None, 2000)],
    )
    def test_max_tokens(self, level: DetailLevel | None, expected: int) -> None:
        assert max_tokens_for(level) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, []),
            ("", []),
            ('["gpt-4.1", " o3 ", "", 5]', ["gpt-4.1", "o3"]),
            ("{broken", []),
            ('{"model": "x"}', []),
        ],
    )
    def test_parse_custom_models(self, raw: str | None, expected: list[str]) -> None:
        assert parse_custom_models(raw) == expected

    def test_custom_models_appended_without_duplicates(self) -> None:
        info = PROVIDER_CATALOG[LLMProvider.DEEPSEEK]

        extended = info.with_custom_models(["deepseek-chat", "deepseek-reasoner"])

        assert [m.value for m in extended.models] == [
            "deepseek-chat",
            "deepseek-coder",
            "deepseek-reasoner",
        ]
        assert [m.value for m in info.models] == ["deepseek-chat", "deepseek-coder"]
        assert info.with_custom_models([]) is info

    def test_custom_model_settings(self) -> None:
        settings_keys = {
            p: info.custom_models_setting for p, info in PROVIDER_CATALOG.items()
            if info.custom_models_setting
        }
        assert settings_keys == {
            LLMProvider.OPENAI: "OPENAI_CUSTOM_MODELS",
            LLMProvider.DEEPSEEK: "DEEPSEEK_CUSTOM_MODELS",
            LLMProvider.OPENROUTER: "OPENROUTER_CUSTOM_MODELS",
        }


class TestOpenRouterModels:
    def test_sort_priority_then_alphabetical(self) -> None:
        models = [
            "zeta/model",
            "openai/gpt-4o",
            "Alpha/model",
            "anthropic/claude-3-haiku",
            "meta-llama/llama-3",
            "anthropic/claude-3.5-sonnet",
        ]
        assert sort_openrouter_models(models) == [
            "anthropic/claude-3-haiku",
            "anthropic/claude-3.5-sonnet",
            "openai/gpt-4o",
            "meta-llama/llama-3",
            "Alpha/model",
            "zeta/model",
        ]

    @pytest.mark.asyncio
    async def test_fetch_models(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            payload = {"data": [{"id": "zeta/x"}, {"id": "openai/gpt-4o"}, {"name": "no id"}]}
            return httpx.Response(200, content=json.dumps(payload))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            models = await fetch_openrouter_models("sk-or", client=client)

        assert models == ["openai/gpt-4o", "zeta/x"]
        assert seen[0].headers["Authorization"] == "Bearer sk-or"
        assert str(seen[0].url) == "https://openrouter.ai/api/v1/models"

    @pytest.mark.asyncio
    async def test_fetch_models_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="bad key"))

        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(ExternalAPIError):
                await fetch_openrouter_models("sk-bad", client=client)
