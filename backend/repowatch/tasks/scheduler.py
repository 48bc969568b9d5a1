"""APSchedulerの設定と管理。

定期実行タスクのスケジュール登録を行う。
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from repowatch.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def setup_jobs() -> None:
    """スケジューラにジョブを登録する。

    - scheduled_sync_job: 毎日 SYNC_CRON_HOUR 時に全アクティブプロジェクトを
      同期し、新規アクティビティがあれば日次レポートを生成する
    """
    from repowatch.tasks.scheduled_sync import scheduled_sync_job

    scheduler.add_job(
        scheduled_sync_job,
        trigger=CronTrigger(
            hour=settings.SYNC_CRON_HOUR,
            minute=0,
            timezone=settings.DEFAULT_TIMEZONE,
        ),
        id="scheduled_sync_job",
        name="Project Sync and Daily Report",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "Registered scheduled_sync_job: daily at %02d:00 %s",
        settings.SYNC_CRON_HOUR,
        settings.DEFAULT_TIMEZONE,
    )
