"""テキスト生成プロバイダの非同期クライアント。

openai ライブラリの ``AsyncOpenAI`` を使用し、OpenAI互換APIを持つ
プロバイダ（OpenAI / DeepSeek / OpenRouter）でレポート本文と要約を生成する。
それ以外のプロバイダは選択肢として公開するのみで、呼び出すと
``ProviderUnimplementedError`` を送出する。
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Protocol

import httpx
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field

from repowatch.core.exceptions import (
    AppException,
    ExternalAPIError,
    ProviderUnimplementedError,
    ReportGenerationError,
)
from repowatch.reporting.types import DetailLevel

if TYPE_CHECKING:
    from repowatch.services.credential_resolver import CredentialResolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7
SUMMARY_MAX_TOKENS = 150
SUMMARY_TEMPERATURE = 0.5

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"

# OpenRouterのモデル一覧で先頭に並べるベンダー
OPENROUTER_PRIORITY: tuple[str, ...] = (
    "anthropic",
    "openai",
    "google",
    "meta-llama",
    "mistralai",
)


# ---------------------------------------------------------------------------
# プロバイダ定義
# ---------------------------------------------------------------------------

class LLMProvider(str, Enum):
    """選択可能なプロバイダ。"""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    AZURE = "azure"
    MISTRAL = "mistral"
    COHERE = "cohere"

    @classmethod
    def parse(cls, value: str | LLMProvider) -> LLMProvider:
        """文字列からプロバイダを得る。

        Raises:
            ProviderUnimplementedError: 未知のプロバイダ名の場合。
        """
        try:
            return cls(value)
        except ValueError:
            raise ProviderUnimplementedError(str(value)) from None


class ModelOption(BaseModel):
    value: str
    label: str


class ProviderInfo(BaseModel):
    """プロバイダのカタログ情報。"""

    model_config = ConfigDict(frozen=True)

    provider: LLMProvider
    label: str
    default_model: str
    models: list[ModelOption] = Field(default_factory=list)
    api_key_setting: str
    base_url_setting: str | None = None
    default_base_url: str | None = None
    available: bool = False
    custom_models_setting: str | None = None

    def with_custom_models(self, names: list[str]) -> ProviderInfo:
        """設定画面で追加されたモデルを末尾に足したコピーを返す。"""
        known = {option.value for option in self.models}
        extra = [ModelOption(value=name, label=name) for name in names if name not in known]
        if not extra:
            return self
        return self.model_copy(update={"models": [*self.models, *extra]})


PROVIDER_CATALOG: dict[LLMProvider, ProviderInfo] = {
    LLMProvider.OPENAI: ProviderInfo(
        provider=LLMProvider.OPENAI,
        label="OpenAI",
        default_model="gpt-4o-mini",
        models=[
            ModelOption(value="gpt-4o", label="GPT-4o"),
            ModelOption(value="gpt-4o-mini", label="GPT-4o Mini (Recommended)"),
            ModelOption(value="gpt-4-turbo", label="GPT-4 Turbo"),
            ModelOption(value="gpt-3.5-turbo", label="GPT-3.5 Turbo"),
        ],
        api_key_setting="OPENAI_API_KEY",
        base_url_setting="OPENAI_BASE_URL",
        custom_models_setting="OPENAI_CUSTOM_MODELS",
        available=True,
    ),
    LLMProvider.DEEPSEEK: ProviderInfo(
        provider=LLMProvider.DEEPSEEK,
        label="DeepSeek",
        default_model="deepseek-chat",
        models=[
            ModelOption(value="deepseek-chat", label="DeepSeek Chat"),
            ModelOption(value="deepseek-coder", label="DeepSeek Coder"),
        ],
        api_key_setting="DEEPSEEK_API_KEY",
        base_url_setting="DEEPSEEK_BASE_URL",
        default_base_url=DEEPSEEK_BASE_URL,
        custom_models_setting="DEEPSEEK_CUSTOM_MODELS",
        available=True,
    ),
    LLMProvider.OPENROUTER: ProviderInfo(
        provider=LLMProvider.OPENROUTER,
        label="OpenRouter",
        default_model="openai/gpt-4o-mini",
        models=[
            ModelOption(value="openai/gpt-4o", label="OpenAI GPT-4o"),
            ModelOption(value="openai/gpt-4o-mini", label="OpenAI GPT-4o Mini"),
            ModelOption(value="anthropic/claude-3.5-sonnet", label="Claude 3.5 Sonnet"),
            ModelOption(value="anthropic/claude-3-haiku", label="Claude 3 Haiku"),
            ModelOption(value="google/gemini-pro-1.5", label="Gemini Pro 1.5"),
            ModelOption(value="meta-llama/llama-3.2-90b-instruct", label="Llama 3.2 90B"),
            ModelOption(value="mistralai/mixtral-8x7b-instruct", label="Mixtral 8x7B"),
            ModelOption(value="qwen/qwen-2.5-72b-instruct", label="Qwen 2.5 72B"),
        ],
        api_key_setting="OPENROUTER_API_KEY",
        base_url_setting="OPENROUTER_BASE_URL",
        default_base_url=OPENROUTER_BASE_URL,
        custom_models_setting="OPENROUTER_CUSTOM_MODELS",
        available=True,
    ),
    LLMProvider.ANTHROPIC: ProviderInfo(
        provider=LLMProvider.ANTHROPIC,
        label="Anthropic (Coming Soon)",
        default_model="claude-3.5-sonnet",
        models=[
            ModelOption(value="claude-3.5-sonnet", label="Claude 3.5 Sonnet"),
            ModelOption(value="claude-3-haiku", label="Claude 3 Haiku"),
        ],
        api_key_setting="ANTHROPIC_API_KEY",
    ),
    LLMProvider.GOOGLE: ProviderInfo(
        provider=LLMProvider.GOOGLE,
        label="Google (Coming Soon)",
        default_model="gemini-pro",
        models=[ModelOption(value="gemini-pro", label="Gemini Pro")],
        api_key_setting="GOOGLE_API_KEY",
    ),
    LLMProvider.AZURE: ProviderInfo(
        provider=LLMProvider.AZURE,
        label="Azure OpenAI (Coming Soon)",
        default_model="gpt-4o",
        api_key_setting="AZURE_OPENAI_API_KEY",
    ),
    LLMProvider.MISTRAL: ProviderInfo(
        provider=LLMProvider.MISTRAL,
        label="Mistral (Coming Soon)",
        default_model="mistral-large-latest",
        api_key_setting="MISTRAL_API_KEY",
    ),
    LLMProvider.COHERE: ProviderInfo(
        provider=LLMProvider.COHERE,
        label="Cohere (Coming Soon)",
        default_model="command-r-plus",
        api_key_setting="COHERE_API_KEY",
    ),
}


class ProviderConfig(BaseModel):
    """プロジェクトごとのプロバイダ選択。"""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None


class ProviderCredential(BaseModel):
    """解決済みの認証情報。APIキーはreprに出さない。"""

    model_config = ConfigDict(frozen=True)

    provider: LLMProvider
    api_key: str = Field(repr=False)
    base_url: str | None = None


def parse_custom_models(raw: str | None) -> list[str]:
    """設定に保存されたカスタムモデル一覧 (JSON配列) を読む。不正な値は空扱い。"""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring custom model list that is not valid JSON")
        return []
    if not isinstance(parsed, list):
        logger.warning("Ignoring custom model list that is not a JSON array")
        return []
    return [name.strip() for name in parsed if isinstance(name, str) and name.strip()]


def max_tokens_for(detail_level: DetailLevel | str | None) -> int:
    """詳細度ごとの最大トークン数。"""
    if detail_level == DetailLevel.SUMMARY:
        return 1000
    if detail_level == DetailLevel.DETAILED:
        return 3000
    return DEFAULT_MAX_TOKENS


# ---------------------------------------------------------------------------
# バックエンド
# ---------------------------------------------------------------------------

class CompletionBackend(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str: ...

    async def close(self) -> None: ...


class OpenAICompatibleBackend:
    """OpenAI Chat Completions 互換APIのバックエンド。

    リトライはSDK側でも行わない（``max_retries=0``）。タイムアウトは
    呼び出し単位で ``timeout`` 秒。
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


class UnimplementedBackend:
    """未実装プロバイダ。呼び出すと常に失敗する。"""

    def __init__(self, provider: LLMProvider) -> None:
        self._provider = provider

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        raise ProviderUnimplementedError(self._provider.value)

    async def close(self) -> None:
        return None


def _openai_compatible(
    credential: ProviderCredential,
    model: str,
    timeout: float,
) -> CompletionBackend:
    info = PROVIDER_CATALOG[credential.provider]
    return OpenAICompatibleBackend(
        model=model,
        api_key=credential.api_key,
        base_url=credential.base_url or info.default_base_url,
        timeout=timeout,
    )


def _unimplemented(
    credential: ProviderCredential,
    model: str,
    timeout: float,
) -> CompletionBackend:
    return UnimplementedBackend(credential.provider)


_BACKEND_FACTORIES: dict[
    LLMProvider, Callable[[ProviderCredential, str, float], CompletionBackend]
] = {
    LLMProvider.OPENAI: _openai_compatible,
    LLMProvider.DEEPSEEK: _openai_compatible,
    LLMProvider.OPENROUTER: _openai_compatible,
    LLMProvider.ANTHROPIC: _unimplemented,
    LLMProvider.GOOGLE: _unimplemented,
    LLMProvider.AZURE: _unimplemented,
    LLMProvider.MISTRAL: _unimplemented,
    LLMProvider.COHERE: _unimplemented,
}


def create_backend(
    credential: ProviderCredential,
    model: str,
    timeout: float = 60.0,
) -> CompletionBackend:
    """解決済みの認証情報からバックエンドを生成する。"""
    return _BACKEND_FACTORIES[credential.provider](credential, model, timeout)


# ---------------------------------------------------------------------------
# クライアント
# ---------------------------------------------------------------------------

class LLMClient:
    """レポート生成用のモデル呼び出しクライアント。

    最初の呼び出し時に認証情報を解決してバックエンドを生成する。
    認証情報の解決はプロバイダの振り分けより先に行うため、未実装
    プロバイダでもキーが無ければ ``CredentialMissingError`` となる。

    ``async with`` で使用するとバックエンドのHTTP接続を確実に閉じる。
    """

    def __init__(
        self,
        provider_config: ProviderConfig,
        resolver: CredentialResolver,
        timeout: float = 60.0,
    ) -> None:
        self._config = provider_config
        self._provider = LLMProvider.parse(provider_config.provider)
        self._resolver = resolver
        self._timeout = timeout
        self._backend: CompletionBackend | None = None

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def model(self) -> str:
        return self._config.model

    async def _get_backend(self) -> CompletionBackend:
        if self._backend is None:
            credential = await self._resolver.resolve(self._config)
            self._backend = create_backend(credential, self._config.model, self._timeout)
        return self._backend

    async def complete(
        self,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """プロンプトを送信して生成テキストを得る。

        Args:
            prompt: 送信するプロンプト。
            max_tokens: 最大出力トークン数。
            temperature: サンプリング温度。

        Returns:
            生成テキスト。

        Raises:
            CredentialMissingError: APIキーが解決できない場合。
            ProviderUnimplementedError: 未実装プロバイダの場合。
            ReportGenerationError: 呼び出し失敗、タイムアウト、空応答の場合。
        """
        backend = await self._get_backend()
        try:
            text = await backend.complete(
                prompt,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except AppException:
            raise
        except Exception as exc:
            logger.error(
                "Completion failed: provider=%s model=%s error=%r",
                self._provider.value,
                self._config.model,
                exc,
            )
            raise ReportGenerationError() from exc

        if not text or not text.strip():
            logger.error(
                "Completion returned empty text: provider=%s model=%s",
                self._provider.value,
                self._config.model,
            )
            raise ReportGenerationError()
        return text

    async def summarize(self, prompt: str) -> str:
        """要約用プロンプトを短い出力設定で送信する。"""
        return await self.complete(
            prompt,
            max_tokens=SUMMARY_MAX_TOKENS,
            temperature=SUMMARY_TEMPERATURE,
        )

    async def close(self) -> None:
        if self._backend is not None:
            await self._backend.close()
            self._backend = None

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# OpenRouter モデル一覧
# ---------------------------------------------------------------------------

def _openrouter_sort_key(model_id: str) -> tuple[int, str]:
    vendor = model_id.split("/", 1)[0]
    if vendor in OPENROUTER_PRIORITY:
        # 優先ベンダー内はAPIの返却順を保つ
        return OPENROUTER_PRIORITY.index(vendor), ""
    return len(OPENROUTER_PRIORITY), model_id.lower()


def sort_openrouter_models(model_ids: list[str]) -> list[str]:
    """優先ベンダー順、その他はアルファベット順に並べる。"""
    return sorted(model_ids, key=_openrouter_sort_key)


async def fetch_openrouter_models(
    api_key: str,
    client: httpx.AsyncClient | None = None,
) -> list[str]:
    """OpenRouterで利用可能なモデルID一覧を取得する。

    Args:
        api_key: OpenRouterのAPIキー。
        client: テスト用に差し替えるHTTPクライアント。

    Returns:
        並べ替え済みのモデルIDリスト。

    Raises:
        ExternalAPIError: OpenRouter APIがエラーを返した場合。
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))

    try:
        response = await client.get(
            f"{OPENROUTER_BASE_URL}/models",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )
    except httpx.HTTPError as exc:
        logger.error("OpenRouter request failed: %s", exc)
        raise ExternalAPIError(detail="Failed to fetch models from OpenRouter") from exc
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code >= 400:
        logger.error(
            "OpenRouter API error: status=%d body=%s",
            response.status_code,
            response.text[:500],
        )
        raise ExternalAPIError(detail="Failed to fetch models from OpenRouter")

    data = response.json().get("data") or []
    return sort_openrouter_models([model["id"] for model in data if model.get("id")])
