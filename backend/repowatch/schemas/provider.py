"""AIプロバイダ関連のPydanticスキーマ。"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from repowatch.external.llm_client import ProviderInfo


class ProviderListResponse(BaseModel):
    """プロバイダカタログのレスポンス。"""

    providers: list[ProviderInfo]
    default_provider: str
    default_model: str


class OpenRouterModelsRequest(BaseModel):
    """OpenRouterモデル一覧取得リクエスト。"""

    api_key: Optional[str] = Field(
        default=None,
        description="OpenRouterのAPIキー。省略時は保存済みの設定を使う",
    )


class OpenRouterModelsResponse(BaseModel):
    """OpenRouterモデル一覧レスポンス。"""

    models: list[str]
