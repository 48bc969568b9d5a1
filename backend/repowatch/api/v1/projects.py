"""プロジェクト管理エンドポイント。

監視対象プロジェクトの登録・取得・更新・削除と、
プロジェクト別レポート設定の取得・更新のAPIを提供する。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.api.deps import get_session
from repowatch.schemas.common import MessageResponse
from repowatch.schemas.project import (
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdateRequest,
    ReportConfigResponse,
    ReportConfigUpdateRequest,
)
from repowatch.services.project_service import ProjectService

router = APIRouter()


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="プロジェクト一覧",
)
async def list_projects(
    session: AsyncSession = Depends(get_session),
) -> ProjectListResponse:
    """登録済みプロジェクトをレポート数付きで新しい順に返す。"""
    projects = await ProjectService(session).list_projects()
    return ProjectListResponse(projects=projects)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=201,
    summary="プロジェクト登録",
)
async def create_project(
    request: ProjectCreateRequest,
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    """GitHubリポジトリを監視対象として登録する。

    Args:
        request: プロジェクト登録リクエスト。
        session: データベースセッション。

    Returns:
        登録したプロジェクト。
    """
    project = await ProjectService(session).create_project(request)
    return ProjectResponse.model_validate(project)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="プロジェクト取得",
)
async def get_project(
    project_id: int,
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    project = await ProjectService(session).get_project(project_id)
    return ProjectResponse.model_validate(project)


@router.patch(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="プロジェクト更新",
)
async def update_project(
    project_id: int,
    request: ProjectUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> ProjectResponse:
    """名前・説明・有効/無効・AIプロバイダ/モデルを更新する。"""
    project = await ProjectService(session).update_project(project_id, request)
    return ProjectResponse.model_validate(project)


@router.delete(
    "/{project_id}",
    response_model=MessageResponse,
    summary="プロジェクト削除",
)
async def delete_project(
    project_id: int,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """プロジェクトと、そのアクティビティ・統計・レポートを削除する。"""
    await ProjectService(session).delete_project(project_id)
    return MessageResponse(message="Project deleted successfully")


# ---------------------------------------------------------------------------
# レポート設定
# ---------------------------------------------------------------------------


@router.get(
    "/{project_id}/config",
    response_model=ReportConfigResponse,
    summary="レポート設定取得",
)
async def get_report_config(
    project_id: int,
    session: AsyncSession = Depends(get_session),
) -> ReportConfigResponse:
    """保存済みの上書き設定と、デフォルトとマージした設定を返す。"""
    override, resolved = await ProjectService(session).get_report_config(project_id)
    return ReportConfigResponse(config=override, resolved=resolved)


@router.put(
    "/{project_id}/config",
    response_model=ReportConfigResponse,
    summary="レポート設定更新",
)
async def update_report_config(
    project_id: int,
    request: ReportConfigUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> ReportConfigResponse:
    """上書き設定を保存する。``config`` がNoneなら上書きを削除する。

    Raises:
        ConfigParseError: 設定値として不正な場合 (400)。
    """
    override, resolved = await ProjectService(session).update_report_config(
        project_id, request.config,
    )
    return ReportConfigResponse(config=override, resolved=resolved)
