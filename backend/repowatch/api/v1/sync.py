"""同期エンドポイント。

プロジェクト単位の手動同期と、外部スケジューラ向けの
cronエンドポイントを提供する。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.api.deps import get_session, verify_cron_secret
from repowatch.schemas.sync import ScheduledSyncResult, SyncResult
from repowatch.services.project_service import ProjectService
from repowatch.services.sync_service import SyncService
from repowatch.tasks.scheduled_sync import run_scheduled_sync

router = APIRouter()


@router.post(
    "/cron",
    response_model=ScheduledSyncResult,
    summary="定期同期（cron）",
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_sync() -> ScheduledSyncResult:
    """全アクティブプロジェクトを同期し、日次レポートを生成する。

    ``Authorization: Bearer <CRON_SECRET>`` が必要。
    """
    return await run_scheduled_sync()


@router.post(
    "/{project_id}",
    response_model=SyncResult,
    summary="プロジェクト同期",
)
async def sync_project(
    project_id: int,
    session: AsyncSession = Depends(get_session),
) -> SyncResult:
    """プロジェクトの Issue / Discussion / PR と統計情報を同期する。

    Raises:
        NotFoundError: プロジェクトが存在しない場合 (404)。
        ExternalAPIError: GitHubトークン未設定、またはGitHub APIエラー (502)。
    """
    project = await ProjectService(session).get_project(project_id)
    return await SyncService(session).sync_project(project)
