"""設定エンドポイント。

APIキー、GitHubトークン、デフォルトAIプロバイダ、プロンプト
テンプレート等のグローバル設定の一覧・更新・削除APIを提供する。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.api.deps import get_session
from repowatch.schemas.common import MessageResponse
from repowatch.schemas.setting import SettingResponse, SettingUpsertRequest
from repowatch.services.settings_service import SettingsService

router = APIRouter()


@router.get(
    "",
    response_model=list[SettingResponse],
    summary="設定一覧",
)
async def list_settings(
    session: AsyncSession = Depends(get_session),
) -> list[SettingResponse]:
    """全設定をキー順に返す。暗号化された値はマスクする。"""
    rows = await SettingsService(session).list_settings()
    return [SettingResponse.from_setting(row) for row in rows]


@router.put(
    "",
    response_model=SettingResponse,
    summary="設定更新",
)
async def upsert_setting(
    request: SettingUpsertRequest,
    session: AsyncSession = Depends(get_session),
) -> SettingResponse:
    """設定を作成または更新する。

    Raises:
        ValidationError: マスク済みプレースホルダが送られた場合 (400)。
    """
    setting = await SettingsService(session).upsert_setting(
        request.key,
        request.value,
        encrypted=request.encrypted,
    )
    return SettingResponse.from_setting(setting)


@router.delete(
    "/{key}",
    response_model=MessageResponse,
    summary="設定削除",
)
async def delete_setting(
    key: str,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await SettingsService(session).delete_setting(key)
    return MessageResponse(message="Setting deleted successfully")
