"""AIプロバイダエンドポイント。

プロバイダカタログと、OpenRouterのモデル一覧取得APIを提供する。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.api.deps import get_session
from repowatch.config import settings as app_settings
from repowatch.core.exceptions import ValidationError
from repowatch.external.llm_client import (
    PROVIDER_CATALOG,
    LLMProvider,
    ProviderInfo,
    fetch_openrouter_models,
    parse_custom_models,
)
from repowatch.schemas.provider import (
    OpenRouterModelsRequest,
    OpenRouterModelsResponse,
    ProviderListResponse,
)
from repowatch.services.credential_resolver import CredentialResolver
from repowatch.services.settings_service import (
    DEFAULT_AI_MODEL,
    DEFAULT_AI_PROVIDER,
    SettingsService,
)

router = APIRouter()


@router.get(
    "",
    response_model=ProviderListResponse,
    summary="プロバイダ一覧",
)
async def list_providers(
    session: AsyncSession = Depends(get_session),
) -> ProviderListResponse:
    """選択可能なAIプロバイダと、現在のデフォルト設定を返す。

    設定画面で追加されたカスタムモデル (``*_CUSTOM_MODELS``) は
    各プロバイダのモデル一覧の末尾に加える。
    """
    store = SettingsService(session)
    providers: list[ProviderInfo] = []
    for info in PROVIDER_CATALOG.values():
        if info.custom_models_setting:
            raw = await store.get_setting(info.custom_models_setting)
            info = info.with_custom_models(parse_custom_models(raw))
        providers.append(info)

    return ProviderListResponse(
        providers=providers,
        default_provider=(
            await store.get_setting(DEFAULT_AI_PROVIDER)
            or app_settings.DEFAULT_AI_PROVIDER
        ),
        default_model=(
            await store.get_setting(DEFAULT_AI_MODEL)
            or app_settings.DEFAULT_AI_MODEL
        ),
    )


@router.post(
    "/openrouter/models",
    response_model=OpenRouterModelsResponse,
    summary="OpenRouterモデル一覧",
)
async def list_openrouter_models(
    request: OpenRouterModelsRequest,
    session: AsyncSession = Depends(get_session),
) -> OpenRouterModelsResponse:
    """OpenRouterで利用可能なモデルIDを返す。

    APIキーが省略された場合は保存済みの設定、環境変数の順で探す。

    Raises:
        ValidationError: APIキーが見つからない場合 (400)。
        ExternalAPIError: OpenRouter APIがエラーを返した場合 (502)。
    """
    api_key = request.api_key
    if not api_key:
        resolver = CredentialResolver(
            SettingsService(session),
            app_settings.provider_environment(),
        )
        api_key = await resolver.lookup(
            PROVIDER_CATALOG[LLMProvider.OPENROUTER].api_key_setting,
        )
    if not api_key:
        raise ValidationError("API key is required")

    return OpenRouterModelsResponse(models=await fetch_openrouter_models(api_key))
