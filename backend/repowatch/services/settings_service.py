"""グローバル設定ストアのサービス。

settingsテーブルをキー・バリューストアとして扱い、APIキーや
GitHubトークン、プロンプトテンプレートなどを保存する。
``encrypted`` 行はAES-GCMで暗号化して保存し、読み出し時に復号する。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from cryptography.exceptions import InvalidTag
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.core.exceptions import NotFoundError, ValidationError
from repowatch.core.security import decrypt_secret, encrypt_secret, is_masked
from repowatch.models import Setting

logger = logging.getLogger(__name__)

# 既知の設定キー
GITHUB_TOKEN = "GITHUB_TOKEN"
DEFAULT_AI_PROVIDER = "DEFAULT_AI_PROVIDER"
DEFAULT_AI_MODEL = "DEFAULT_AI_MODEL"
REPORT_PROMPT_TEMPLATE = "REPORT_PROMPT_TEMPLATE"
SUMMARY_PROMPT_TEMPLATE = "SUMMARY_PROMPT_TEMPLATE"


class SettingsService:
    """settingsテーブルの読み書きを行うサービスクラス。"""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_settings(self) -> Sequence[Setting]:
        """全設定をキー順に取得する。値のマスクは呼び出し側で行う。"""
        result = await self.session.execute(select(Setting).order_by(Setting.key))
        return result.scalars().all()

    async def get_setting(self, key: str) -> str | None:
        """設定値を取得する。

        暗号化行は復号して返す。値が未設定、マスク済みプレースホルダ、
        または復号できない場合は None を返す。

        Args:
            key: 設定キー。

        Returns:
            平文の設定値、または None。
        """
        row = await self.session.get(Setting, key)
        if row is None or not row.value or is_masked(row.value):
            return None

        if not row.encrypted:
            return row.value

        try:
            return decrypt_secret(row.value)
        except (InvalidTag, ValueError):
            logger.warning("Failed to decrypt setting %s, ignoring stored value", key)
            return None

    async def upsert_setting(
        self,
        key: str,
        value: str,
        encrypted: bool = False,
    ) -> Setting:
        """設定値を作成または更新する。

        Args:
            key: 設定キー。
            value: 平文の値。
            encrypted: Trueの場合は暗号化して保存する。

        Returns:
            保存後のSettingインスタンス。

        Raises:
            ValidationError: キーが空、または値がマスク済みプレースホルダの場合。
        """
        if not key:
            raise ValidationError("Setting key is required")
        if is_masked(value):
            # UIが一覧の値をそのまま送り返した場合は保存しない
            raise ValidationError(f"Refusing to store masked placeholder for {key}")

        stored = encrypt_secret(value) if encrypted else value
        stmt = (
            pg_insert(Setting)
            .values(key=key, value=stored, encrypted=encrypted)
            .on_conflict_do_update(
                index_elements=[Setting.key],
                set_={"value": stored, "encrypted": encrypted},
            )
            .returning(Setting)
        )
        result = await self.session.execute(stmt)
        setting = result.scalar_one()
        await self.session.flush()
        logger.info("Setting %s saved (encrypted=%s)", key, encrypted)
        return setting

    async def delete_setting(self, key: str) -> None:
        """設定を削除する。

        Raises:
            NotFoundError: キーが存在しない場合。
        """
        row = await self.session.get(Setting, key)
        if row is None:
            raise NotFoundError(f"Setting not found: {key}")
        await self.session.delete(row)
        await self.session.flush()
        logger.info("Setting %s deleted", key)
