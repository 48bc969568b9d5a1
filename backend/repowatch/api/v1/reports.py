"""レポートエンドポイント。

レポートの一覧・詳細取得と、AIによるレポート生成のAPIを提供する。
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.api.deps import get_session
from repowatch.schemas.common import PaginationMeta
from repowatch.schemas.report import (
    GenerateReportRequest,
    ReportListItem,
    ReportListResponse,
    ReportResponse,
)
from repowatch.services.project_service import ProjectService
from repowatch.services.report_service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=ReportListResponse,
    summary="レポート一覧",
)
async def list_reports(
    project_id: Optional[int] = Query(default=None, description="プロジェクトIDで絞り込み"),
    page: int = Query(default=1, ge=1, description="ページ番号"),
    per_page: int = Query(default=20, ge=1, le=100, description="1ページあたりの件数"),
    session: AsyncSession = Depends(get_session),
) -> ReportListResponse:
    """レポートを新しい順に返す（本文は含まない）。"""
    reports, total = await ReportService(session).list_reports(
        project_id=project_id,
        limit=per_page,
        offset=(page - 1) * per_page,
    )
    return ReportListResponse(
        reports=[ReportListItem.model_validate(r) for r in reports],
        pagination=PaginationMeta(page=page, per_page=per_page, total=total),
    )


@router.get(
    "/{report_id}",
    response_model=ReportResponse,
    summary="レポート詳細",
)
async def get_report(
    report_id: int,
    session: AsyncSession = Depends(get_session),
) -> ReportResponse:
    report = await ReportService(session).get_report(report_id)
    return ReportResponse.model_validate(report)


@router.post(
    "/generate",
    response_model=ReportResponse,
    status_code=201,
    summary="レポート生成",
)
async def generate_report(
    request: GenerateReportRequest,
    session: AsyncSession = Depends(get_session),
) -> ReportResponse:
    """プロジェクトのアクティビティからレポートを生成して保存する。

    Args:
        request: レポート生成リクエスト。
        session: データベースセッション。

    Returns:
        生成したレポート。

    Raises:
        NotFoundError: プロジェクトが無い、または期間内のアクティビティが無い場合 (404)。
        CredentialMissingError: APIキー未設定 (400)。
        ProviderUnimplementedError: 未実装プロバイダ (501)。
        ReportGenerationError: モデル呼び出し失敗 (502)。
    """
    project = await ProjectService(session).get_project(request.project_id)
    report = await ReportService(session).generate(
        project,
        report_type=request.report_type,
        detail_level=request.detail_level,
    )
    return ReportResponse.model_validate(report)
