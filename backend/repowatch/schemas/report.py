"""レポート関連のPydanticスキーマ。

レポート生成リクエスト、一覧・詳細取得のAPI用スキーマを定義する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repowatch.reporting.types import DetailLevel, ReportType
from repowatch.schemas.common import PaginationMeta


class GenerateReportRequest(BaseModel):
    """レポート生成リクエスト。"""

    project_id: int = Field(..., description="対象プロジェクトID")
    report_type: ReportType = Field(
        default=ReportType.DAILY,
        description="集計期間 (DAILY / WEEKLY / MONTHLY)",
    )
    detail_level: DetailLevel = Field(
        default=DetailLevel.DETAILED,
        description="詳細度 (summary / detailed)",
    )


class ReportListItem(BaseModel):
    """レポート一覧の1件（本文を含まない）。"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    title: str
    summary: str
    report_type: str
    detail_level: str
    report_date: datetime
    issues_count: int
    discussions_count: int
    pull_requests_count: int
    created_at: datetime


class ReportResponse(ReportListItem):
    """レポート詳細レスポンス。"""

    content: str
    highlights: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)


class ReportListResponse(BaseModel):
    """レポート一覧レスポンス。"""

    reports: list[ReportListItem]
    pagination: PaginationMeta
