"""プロジェクト管理サービス。

監視対象プロジェクトの登録・更新・削除と、プロジェクト別
レポート設定（部分的な上書きJSON）の読み書きを行う。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.config import settings as app_settings
from repowatch.core.exceptions import (
    ConflictError,
    ExternalAPIError,
    NotFoundError,
    ValidationError,
)
from repowatch.external.github_client import parse_github_url
from repowatch.external.llm_client import LLMProvider
from repowatch.models import Project, Report
from repowatch.reporting.config import (
    DEFAULT_REPORT_CONFIG,
    dump_report_config,
    merge_report_config,
    resolve_report_config,
)
from repowatch.schemas.project import (
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
)
from repowatch.services.settings_service import (
    DEFAULT_AI_MODEL,
    DEFAULT_AI_PROVIDER,
    SettingsService,
)
from repowatch.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class ProjectService:
    """プロジェクトのCRUDを行うサービスクラス。"""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_projects(self) -> list[ProjectResponse]:
        """プロジェクト一覧をレポート数付きで新しい順に取得する。"""
        report_count_subq = (
            select(Report.project_id, func.count().label("reports_count"))
            .group_by(Report.project_id)
            .subquery()
        )
        stmt = (
            select(
                Project,
                func.coalesce(report_count_subq.c.reports_count, 0).label("reports_count"),
            )
            .outerjoin(report_count_subq, Project.id == report_count_subq.c.project_id)
            .order_by(Project.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [
            ProjectResponse.model_validate(project).model_copy(
                update={"reports_count": reports_count},
            )
            for project, reports_count in result.all()
        ]

    async def get_project(self, project_id: int) -> Project:
        """プロジェクトを取得する。

        Raises:
            NotFoundError: 存在しない場合。
        """
        project = await self.session.get(Project, project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project

    async def create_project(self, request: ProjectCreateRequest) -> Project:
        """プロジェクトを登録する。

        URLを (owner, repo) に分解し、GitHub上で参照できることを確認してから
        保存する。AIプロバイダ・モデルは設定のデフォルト値を使う。

        Raises:
            ValidationError: GitHubのURLとして不正な場合。
            NotFoundError: リポジトリが存在しない、または参照できない場合。
            ConflictError: 同じURLのプロジェクトが既にある場合。
        """
        parsed = parse_github_url(request.github_url)
        if parsed is None:
            raise ValidationError("Invalid GitHub URL format")
        owner, repo = parsed

        existing = await self.session.execute(
            select(Project.id).where(Project.github_url == request.github_url)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Project already exists")

        async with await SyncService(self.session).get_github_client() as client:
            try:
                await client.get_repository(owner, repo)
            except ExternalAPIError as e:
                logger.warning("Repository %s/%s is not accessible: %s", owner, repo, e.detail)
                raise NotFoundError("Repository not found or not accessible")

        store = SettingsService(self.session)
        project = Project(
            name=request.name,
            description=request.description,
            github_url=request.github_url,
            owner=owner,
            repo=repo,
            ai_provider=(
                await store.get_setting(DEFAULT_AI_PROVIDER)
                or app_settings.DEFAULT_AI_PROVIDER
            ),
            ai_model=(
                await store.get_setting(DEFAULT_AI_MODEL)
                or app_settings.DEFAULT_AI_MODEL
            ),
        )
        self.session.add(project)
        await self.session.flush()
        await self.session.refresh(project)
        logger.info("Created project %s (id=%s, %s/%s)", project.name, project.id, owner, repo)
        return project

    async def update_project(
        self,
        project_id: int,
        request: ProjectUpdateRequest,
    ) -> Project:
        """指定された項目のみ更新する。

        Raises:
            NotFoundError: 存在しない場合。
            ValidationError: 未知のAIプロバイダ名の場合。
        """
        project = await self.get_project(project_id)
        updates = request.model_dump(exclude_unset=True)

        provider = updates.get("ai_provider")
        if provider is not None and provider not in {p.value for p in LLMProvider}:
            raise ValidationError(f"Unknown AI provider: {provider}")

        for field, value in updates.items():
            if value is not None:
                setattr(project, field, value)

        self.session.add(project)
        await self.session.flush()
        await self.session.refresh(project)
        return project

    async def delete_project(self, project_id: int) -> None:
        """プロジェクトと関連データを削除する。"""
        project = await self.get_project(project_id)
        await self.session.delete(project)
        await self.session.flush()
        logger.info("Deleted project %d", project_id)

    # ------------------------------------------------------------------
    # レポート設定
    # ------------------------------------------------------------------

    async def get_report_config(self, project_id: int) -> tuple[dict[str, Any] | None, dict[str, Any]]:
        """保存済みの上書き設定と、マージ後の設定を返す。"""
        project = await self.get_project(project_id)
        override: dict[str, Any] | None = None
        if project.report_config:
            try:
                override = json.loads(project.report_config)
            except ValueError:
                logger.warning("Stored report config for project %d is not valid JSON", project_id)
        resolved = resolve_report_config(project.report_config).to_dict()
        return override, resolved

    async def update_report_config(
        self,
        project_id: int,
        config: dict[str, Any] | None,
    ) -> tuple[dict[str, Any] | None, dict[str, Any]]:
        """上書き設定を保存する。Noneなら上書きを削除する。

        Raises:
            ConfigParseError: 設定値として不正な場合。
        """
        project = await self.get_project(project_id)

        if config:
            # 不正な値はここで弾く（レポート生成時の暗黙のフォールバックを避ける）
            resolved = merge_report_config(config, DEFAULT_REPORT_CONFIG, strict=True)
            project.report_config = dump_report_config(config)
        else:
            resolved = DEFAULT_REPORT_CONFIG
            project.report_config = None

        self.session.add(project)
        await self.session.flush()
        logger.info("Updated report config for project %d", project_id)
        return (config or None), resolved.to_dict()
