"""定期同期・日次レポート生成タスク。

APSchedulerのジョブと cron エンドポイントの両方から呼ばれる。
プロジェクトごとにセッションを分け、1プロジェクトの失敗が
他のプロジェクトに影響しないようにする。
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repowatch.core.exceptions import AppException, NoActivityError
from repowatch.database import async_session_factory
from repowatch.models import Project
from repowatch.reporting.types import DetailLevel, ReportType
from repowatch.schemas.sync import ProjectRunFailure, ScheduledSyncResult
from repowatch.services.report_service import ReportService
from repowatch.services.sync_service import SyncService

logger = logging.getLogger(__name__)


async def run_scheduled_sync(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    sync_service_factory: Callable[[AsyncSession], SyncService] = SyncService,
    report_service_factory: Callable[[AsyncSession], ReportService] = ReportService,
) -> ScheduledSyncResult:
    """全アクティブプロジェクトを同期し、日次レポートを生成する。

    1. アクティブプロジェクト一覧を取得
    2. プロジェクトごとに同期してコミット
    3. 新規・更新アクティビティが1件以上あれば DAILY / detailed レポートを生成

    Args:
        session_factory: プロジェクトごとのセッションを生成するファクトリ。
        sync_service_factory: SyncServiceの生成関数。
        report_service_factory: ReportServiceの生成関数。

    Returns:
        実行結果の集計。
    """
    async with session_factory() as session:
        result = await session.execute(
            select(Project.id).where(Project.is_active.is_(True)).order_by(Project.id)
        )
        project_ids = list(result.scalars().all())

    summary = ScheduledSyncResult(projects=len(project_ids))
    logger.info("Starting scheduled sync for %d active projects", len(project_ids))

    for project_id in project_ids:
        async with session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None:
                continue
            name = project.name

            try:
                sync_result = await sync_service_factory(session).sync_project(project)
                await session.commit()
                summary.total_synced += sync_result.synced_count

                if sync_result.synced_count > 0:
                    try:
                        await report_service_factory(session).generate(
                            project,
                            ReportType.DAILY,
                            DetailLevel.DETAILED,
                        )
                        await session.commit()
                        summary.reports_generated += 1
                    except NoActivityError:
                        await session.rollback()
                        logger.info("No reportable activity for project %s", name)
            except Exception as exc:
                await session.rollback()
                logger.exception("Scheduled sync failed for project %s", name)
                error = exc.detail if isinstance(exc, AppException) else type(exc).__name__
                summary.failures.append(
                    ProjectRunFailure(project_id=project_id, name=name, error=error)
                )

    logger.info(
        "Scheduled sync completed: synced=%d reports=%d failures=%d",
        summary.total_synced,
        summary.reports_generated,
        len(summary.failures),
    )
    return summary


async def scheduled_sync_job() -> None:
    """APSchedulerから呼ばれる定期ジョブ。"""
    await run_scheduled_sync()
