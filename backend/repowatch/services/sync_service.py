"""同期サービス。

GitHubから Issue / Discussion / Pull Request と統計情報を取得し、
activity_records / repository_stats テーブルに保存する。
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.config import settings as app_settings
from repowatch.core.exceptions import ExternalAPIError
from repowatch.external.github_client import GitHubClient, parse_github_datetime
from repowatch.models import ActivityRecord, Project, RepositoryStats
from repowatch.reporting.types import ActivityKind
from repowatch.schemas.sync import SyncResult
from repowatch.services.settings_service import GITHUB_TOKEN, SettingsService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# GitHubレスポンス → activity_records の列
# ---------------------------------------------------------------------------

def _issue_values(issue: dict[str, Any]) -> dict[str, Any]:
    return {
        "github_id": issue["number"],
        "title": issue["title"],
        "body": issue.get("body") or "",
        "author": (issue.get("user") or {}).get("login") or "unknown",
        "url": issue.get("html_url"),
        "state": issue.get("state"),
        "created_at": parse_github_datetime(issue["created_at"]),
        "updated_at": parse_github_datetime(issue.get("updated_at")),
    }


def _pull_request_values(pr: dict[str, Any]) -> dict[str, Any]:
    values = _issue_values(pr)
    if pr.get("merged_at"):
        values["state"] = "merged"
    return values


def _discussion_values(discussion: dict[str, Any]) -> dict[str, Any]:
    return {
        "github_id": discussion["number"],
        "title": discussion["title"],
        "body": discussion.get("body") or "",
        "author": (discussion.get("author") or {}).get("login") or "unknown",
        "url": discussion.get("url"),
        "state": None,
        "created_at": parse_github_datetime(discussion["createdAt"]),
        "updated_at": parse_github_datetime(discussion.get("updatedAt")),
    }


_NORMALIZERS: dict[ActivityKind, Callable[[dict[str, Any]], dict[str, Any]]] = {
    ActivityKind.ISSUE: _issue_values,
    ActivityKind.DISCUSSION: _discussion_values,
    ActivityKind.PULL_REQUEST: _pull_request_values,
}


class SyncService:
    """GitHub同期サービス。"""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: Callable[[str], GitHubClient] = GitHubClient,
    ) -> None:
        """SyncServiceを初期化する。

        Args:
            session: 非同期データベースセッション。
            client_factory: トークンからGitHubClientを生成する関数。
        """
        self.session = session
        self._client_factory = client_factory

    async def get_github_client(self) -> GitHubClient:
        """設定（なければ環境変数）のトークンでクライアントを生成する。

        Raises:
            ExternalAPIError: トークンが未設定の場合。
        """
        token = await SettingsService(self.session).get_setting(GITHUB_TOKEN)
        token = token or app_settings.GITHUB_TOKEN
        if not token:
            raise ExternalAPIError(
                detail="GitHub token not configured. Please configure it in Settings."
            )
        return self._client_factory(token)

    async def sync_project(
        self,
        project: Project,
        client: GitHubClient | None = None,
    ) -> SyncResult:
        """1プロジェクトの同期を実行する。

        1. since = project.last_sync_at
        2. Issue / Discussion / PR を並行取得
        3. 1件ずつupsert（失敗した行はスキップ）
        4. 統計スナップショット保存（失敗しても継続）
        5. project.last_sync_at 更新

        Args:
            project: 対象プロジェクト。
            client: 使用するGitHubClient。省略時は設定のトークンで生成して閉じる。

        Returns:
            SyncResult。

        Raises:
            ExternalAPIError: Issue / PRの取得に失敗した場合。
        """
        owns_client = client is None
        if client is None:
            client = await self.get_github_client()

        since = project.last_sync_at
        logger.info(
            "Syncing project %s (id=%d, %s/%s, since=%s)",
            project.name,
            project.id,
            project.owner,
            project.repo,
            since,
        )

        try:
            issues, discussions, pull_requests = await asyncio.gather(
                client.get_issues(project.owner, project.repo, since=since),
                client.get_discussions(project.owner, project.repo),
                client.get_pull_requests(project.owner, project.repo, since=since),
            )

            result = SyncResult(
                project_id=project.id,
                issues=len(issues),
                discussions=len(discussions),
                pull_requests=len(pull_requests),
            )

            for kind, items in (
                (ActivityKind.ISSUE, issues),
                (ActivityKind.DISCUSSION, discussions),
                (ActivityKind.PULL_REQUEST, pull_requests),
            ):
                synced, failed = await self._upsert_activity(project.id, kind, items)
                result.synced_count += synced
                result.failed_count += failed

            result.stats_captured = await self._capture_stats(project, client)
        finally:
            if owns_client:
                await client.close()

        project.last_sync_at = datetime.now(timezone.utc)
        self.session.add(project)
        await self.session.flush()

        result.synced_at = project.last_sync_at
        logger.info(
            "Synced project %s: %d items (%d failed), stats_captured=%s",
            project.name,
            result.synced_count,
            result.failed_count,
            result.stats_captured,
        )
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _upsert_activity(
        self,
        project_id: int,
        kind: ActivityKind,
        items: list[dict[str, Any]],
    ) -> tuple[int, int]:
        """アクティビティを1件ずつupsertする。

        (project_id, github_id, kind) が既存の場合は title / body / state /
        updated_at / synced_at のみ更新する。各行はセーブポイント内で
        実行し、失敗した行だけをロールバックする。

        Returns:
            (成功件数, 失敗件数)。
        """
        normalize = _NORMALIZERS[kind]
        synced = failed = 0

        for item in items:
            now = datetime.now(timezone.utc)
            try:
                values = normalize(item)
                stmt = pg_insert(ActivityRecord).values(
                    project_id=project_id,
                    kind=kind.value,
                    synced_at=now,
                    **values,
                )
                stmt = stmt.on_conflict_do_update(
                    constraint="uq_activity_records_project_github_kind",
                    set_={
                        "title": stmt.excluded.title,
                        "body": stmt.excluded.body,
                        "state": stmt.excluded.state,
                        "updated_at": stmt.excluded.updated_at,
                        "synced_at": now,
                    },
                )
                async with self.session.begin_nested():
                    await self.session.execute(stmt)
                synced += 1
            except (KeyError, TypeError, ValueError, SQLAlchemyError) as e:
                failed += 1
                logger.warning(
                    "Failed to sync %s #%s for project %d: %s",
                    kind.value,
                    item.get("number", "?"),
                    project_id,
                    e,
                )

        return synced, failed

    async def _capture_stats(self, project: Project, client: GitHubClient) -> bool:
        """統計スナップショットを保存する。失敗時はFalse。"""
        try:
            stats = await client.get_repository_stats(project.owner, project.repo)
        except ExternalAPIError as e:
            logger.warning(
                "Failed to fetch repository stats for %s/%s: %s",
                project.owner,
                project.repo,
                e.detail,
            )
            return False

        try:
            async with self.session.begin_nested():
                self.session.add(RepositoryStats(project_id=project.id, **stats))
                await self.session.flush()
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to store repository stats for project %d: %s",
                project.id,
                e,
            )
            return False
        return True
