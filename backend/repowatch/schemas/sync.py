"""同期関連のPydanticスキーマ。

プロジェクト単位の同期結果と、定期ジョブ（cron）の実行結果を定義する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    """1プロジェクトの同期結果。"""

    project_id: int
    issues: int = Field(default=0, description="取得したIssue数")
    discussions: int = Field(default=0, description="取得したDiscussion数")
    pull_requests: int = Field(default=0, description="取得したPR数")
    synced_count: int = Field(default=0, description="upsertに成功した件数")
    failed_count: int = Field(default=0, description="upsertに失敗した件数")
    stats_captured: bool = Field(
        default=False,
        description="統計スナップショットを保存できたか",
    )
    synced_at: Optional[datetime] = None


class ProjectRunFailure(BaseModel):
    """定期ジョブで失敗したプロジェクト。"""

    project_id: int
    name: str
    error: str


class ScheduledSyncResult(BaseModel):
    """定期ジョブ（同期 + 日次レポート生成）の実行結果。"""

    projects: int = Field(default=0, description="対象のアクティブプロジェクト数")
    total_synced: int = Field(default=0, description="同期した総件数")
    reports_generated: int = Field(default=0, description="生成した日次レポート数")
    failures: list[ProjectRunFailure] = Field(default_factory=list)
