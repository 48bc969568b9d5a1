"""プロバイダ認証情報の解決。

優先順位:
    1. ProviderConfig に明示されたAPIキー / ベースURL
    2. settingsテーブルに保存された値（マスク値は無視、暗号化行は復号）
    3. 構築時に渡された環境変数マッピング

パイプライン自体はプロセスの環境変数を直接参照しない。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from repowatch.core.exceptions import CredentialMissingError
from repowatch.core.security import mask_secret
from repowatch.external.llm_client import (
    PROVIDER_CATALOG,
    LLMProvider,
    ProviderConfig,
    ProviderCredential,
)

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    async def get_setting(self, key: str) -> str | None: ...


class CredentialResolver:
    """APIキーとベースURLを解決するクラス。"""

    def __init__(
        self,
        settings_store: SettingsStore | None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._store = settings_store
        self._environ = dict(environ or {})

    async def _lookup(self, key: str | None) -> str | None:
        if not key:
            return None

        if self._store is not None:
            try:
                value = await self._store.get_setting(key)
            except SQLAlchemyError:
                logger.warning(
                    "Failed to read setting %s, falling back to environment",
                    key,
                    exc_info=True,
                )
            else:
                if value:
                    return value

        return self._environ.get(key) or None

    async def lookup(self, key: str) -> str | None:
        """任意の設定キーを保存値 → 環境変数の順で解決する。"""
        return await self._lookup(key)

    async def resolve(self, provider_config: ProviderConfig) -> ProviderCredential:
        """プロバイダの認証情報を解決する。

        Args:
            provider_config: プロジェクトのプロバイダ選択。

        Returns:
            解決済みの ``ProviderCredential``。

        Raises:
            ProviderUnimplementedError: 未知のプロバイダ名の場合。
            CredentialMissingError: APIキーがどこにも無い場合。
        """
        provider = LLMProvider.parse(provider_config.provider)
        info = PROVIDER_CATALOG[provider]

        api_key = provider_config.api_key or await self._lookup(info.api_key_setting)
        if not api_key:
            raise CredentialMissingError(provider.value)

        base_url = provider_config.base_url or await self._lookup(info.base_url_setting)
        logger.debug(
            "Resolved %s credentials (api key %s, base url %s)",
            provider.value,
            mask_secret(api_key),
            base_url or "default",
        )

        return ProviderCredential(provider=provider, api_key=api_key, base_url=base_url)
