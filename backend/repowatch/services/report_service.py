"""レポート生成サービス。

1プロジェクト・1期間分のレポートを生成して保存する。

    期間算出 → アクティビティ取得 → (0件なら NoActivityError)
    → 設定マージ → 統計スナップショット取得 → プロンプト構築
    → 本文生成 → 後処理（要約・ハイライト・メトリクス） → reports へ保存

モデル呼び出しはリクエスト単位で生成する ``LLMClient`` で行い、
モジュールレベルの状態は持たない。
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.config import settings as app_settings
from repowatch.core.exceptions import NoActivityError, NotFoundError
from repowatch.external.llm_client import LLMClient, ProviderConfig, max_tokens_for
from repowatch.models import ActivityRecord, Project, Report, RepositoryStats
from repowatch.reporting.config import resolve_report_config
from repowatch.reporting.postprocess import postprocess
from repowatch.reporting.prompts import build_prompt
from repowatch.reporting.types import (
    ActivityItem,
    ActivityKind,
    DetailLevel,
    GeneratedReport,
    ReportRequest,
    ReportType,
    StatsSnapshot,
)
from repowatch.services.credential_resolver import CredentialResolver
from repowatch.services.settings_service import (
    DEFAULT_AI_MODEL,
    DEFAULT_AI_PROVIDER,
    REPORT_PROMPT_TEMPLATE,
    SUMMARY_PROMPT_TEMPLATE,
    SettingsService,
)

logger = logging.getLogger(__name__)

LLMFactory = Callable[[ProviderConfig], LLMClient]


# ---------------------------------------------------------------------------
# 期間・分類
# ---------------------------------------------------------------------------

def _subtract_month(value: datetime) -> datetime:
    """1暦月前の同日時刻（月末は前月の最終日に丸める）。"""
    year, month = value.year, value.month - 1
    if month == 0:
        year, month = year - 1, 12
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def window_start(report_type: ReportType, now: datetime) -> datetime:
    """レポート種別ごとの集計開始時刻。"""
    if report_type == ReportType.DAILY:
        return now - timedelta(days=1)
    if report_type == ReportType.WEEKLY:
        return now - timedelta(weeks=1)
    return _subtract_month(now)


def partition_activity(
    records: Sequence[ActivityRecord],
) -> tuple[list[ActivityItem], list[ActivityItem], list[ActivityItem]]:
    """アクティビティを (issues, discussions, pull_requests) に分ける。入力順を保つ。"""
    buckets: dict[str, list[ActivityItem]] = {kind.value: [] for kind in ActivityKind}
    for record in records:
        buckets[record.kind].append(ActivityItem.model_validate(record))
    return (
        buckets[ActivityKind.ISSUE.value],
        buckets[ActivityKind.DISCUSSION.value],
        buckets[ActivityKind.PULL_REQUEST.value],
    )


def report_title(project_name: str, report_type: ReportType, detail_level: DetailLevel, now: datetime) -> str:
    title = f"{project_name} {report_type.label} Report - {now:%Y-%m-%d}"
    if detail_level == DetailLevel.SUMMARY:
        title += " (Summary)"
    return title


# ---------------------------------------------------------------------------
# パイプライン
# ---------------------------------------------------------------------------

async def run_report_pipeline(
    request: ReportRequest,
    llm: LLMClient,
    report_template: str | None = None,
    summary_template: str | None = None,
    now: datetime | None = None,
) -> GeneratedReport:
    """入力一式から本文を生成し、要約・ハイライト・メトリクスを付与する。

    Args:
        request: パイプライン入力。
        llm: モデル呼び出しクライアント。
        report_template: 詳細レポートの保存済みテンプレート。
        summary_template: 要約の保存済みテンプレート。
        now: メトリクスの基準時刻。

    Returns:
        GeneratedReport。

    Raises:
        NoActivityError: アクティビティが0件の場合（モデルは呼び出さない）。
        CredentialMissingError: APIキーが解決できない場合。
        ProviderUnimplementedError: 未実装プロバイダの場合。
        ReportGenerationError: 本文生成に失敗した場合。
    """
    if not request.all_items:
        raise NoActivityError()

    prompt = build_prompt(request, template=report_template)
    content = await llm.complete(prompt, max_tokens=max_tokens_for(request.detail_level))
    summary, highlights, metrics = await postprocess(
        content,
        request,
        llm,
        now=now,
        summary_template=summary_template,
    )
    return GeneratedReport(
        content=content,
        summary=summary,
        highlights=highlights,
        metrics=metrics,
    )


def _default_llm_factory(session: AsyncSession) -> LLMFactory:
    resolver = CredentialResolver(
        SettingsService(session),
        app_settings.provider_environment(),
    )

    def factory(provider_config: ProviderConfig) -> LLMClient:
        return LLMClient(
            provider_config,
            resolver,
            timeout=app_settings.LLM_TIMEOUT_SECONDS,
        )

    return factory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportService:
    """レポートの生成・取得を行うサービスクラス。"""

    def __init__(
        self,
        session: AsyncSession,
        llm_factory: LLMFactory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """ReportServiceを初期化する。

        Args:
            session: 非同期データベースセッション。
            llm_factory: ProviderConfigからLLMClientを生成する関数。
            clock: 現在時刻を返す関数。
        """
        self.session = session
        self._settings = SettingsService(session)
        self._llm_factory = llm_factory or _default_llm_factory(session)
        self._clock = clock

    # ------------------------------------------------------------------
    # 生成
    # ------------------------------------------------------------------

    async def generate(
        self,
        project: Project,
        report_type: ReportType = ReportType.DAILY,
        detail_level: DetailLevel = DetailLevel.DETAILED,
    ) -> Report:
        """プロジェクトのレポートを生成して保存する。

        Args:
            project: 対象プロジェクト。
            report_type: 集計期間の粒度。
            detail_level: 詳細度。

        Returns:
            保存したReportインスタンス。

        Raises:
            NoActivityError: 期間内のアクティビティが0件の場合。
            CredentialMissingError: APIキーが解決できない場合。
            ProviderUnimplementedError: 未実装プロバイダの場合。
            ReportGenerationError: 本文生成に失敗した場合。
        """
        now = self._clock()
        start = window_start(report_type, now)

        records = await self._fetch_activity(project.id, start)
        if not records:
            logger.info(
                "No activity for project %s since %s, skipping %s report",
                project.name,
                start.isoformat(),
                report_type.value,
            )
            raise NoActivityError()

        issues, discussions, pull_requests = partition_activity(records)
        stats_current, stats_previous = await self._fetch_stats(project.id, start)

        request = ReportRequest(
            project_name=project.name,
            issues=issues,
            discussions=discussions,
            pull_requests=pull_requests,
            stats_current=stats_current,
            stats_previous=stats_previous,
            report_type=report_type,
            detail_level=detail_level,
            config=resolve_report_config(project.report_config),
        )

        report_template = await self._settings.get_setting(REPORT_PROMPT_TEMPLATE)
        summary_template = await self._settings.get_setting(SUMMARY_PROMPT_TEMPLATE)
        provider_config = await self._provider_config(project)

        logger.info(
            "Generating %s/%s report for project %s with %s:%s "
            "(%d issues, %d discussions, %d pull requests)",
            report_type.value,
            detail_level.value,
            project.name,
            provider_config.provider,
            provider_config.model,
            len(issues),
            len(discussions),
            len(pull_requests),
        )

        async with self._llm_factory(provider_config) as llm:
            generated = await run_report_pipeline(
                request,
                llm,
                report_template=report_template,
                summary_template=summary_template,
                now=now,
            )

        report = Report(
            project_id=project.id,
            title=report_title(project.name, report_type, detail_level, now),
            content=generated.content,
            summary=generated.summary,
            report_type=report_type.value,
            detail_level=detail_level.value,
            report_date=now,
            issues_count=len(issues),
            discussions_count=len(discussions),
            pull_requests_count=len(pull_requests),
            highlights=list(generated.highlights),
            metrics=generated.metrics.model_dump(mode="json", by_alias=True),
        )
        self.session.add(report)
        await self.session.flush()
        await self.session.refresh(report)

        logger.info("Saved report %s for project %s", report.id, project.name)
        return report

    # ------------------------------------------------------------------
    # 取得
    # ------------------------------------------------------------------

    async def list_reports(
        self,
        project_id: int | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Report], int]:
        """レポート一覧を新しい順に取得する。

        Returns:
            (レポートのリスト, 総件数)。
        """
        stmt = select(Report)
        count_stmt = select(func.count()).select_from(Report)
        if project_id is not None:
            stmt = stmt.where(Report.project_id == project_id)
            count_stmt = count_stmt.where(Report.project_id == project_id)

        total = (await self.session.execute(count_stmt)).scalar_one()
        result = await self.session.execute(
            stmt.order_by(Report.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_report(self, report_id: int) -> Report:
        """レポートを1件取得する。

        Raises:
            NotFoundError: 存在しない場合。
        """
        report = await self.session.get(Report, report_id)
        if report is None:
            raise NotFoundError(f"Report not found: {report_id}")
        return report

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fetch_activity(self, project_id: int, start: datetime) -> list[ActivityRecord]:
        stmt = (
            select(ActivityRecord)
            .where(
                ActivityRecord.project_id == project_id,
                or_(
                    ActivityRecord.created_at >= start,
                    ActivityRecord.updated_at >= start,
                ),
            )
            .order_by(ActivityRecord.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _fetch_stats(
        self,
        project_id: int,
        start: datetime,
    ) -> tuple[StatsSnapshot | None, StatsSnapshot | None]:
        """最新のスナップショットと、期間開始より前の最新スナップショット。"""
        latest = (
            select(RepositoryStats)
            .where(RepositoryStats.project_id == project_id)
            .order_by(RepositoryStats.captured_at.desc())
            .limit(1)
        )
        current = (await self.session.execute(latest)).scalar_one_or_none()
        if current is None:
            return None, None

        previous_stmt = latest.where(RepositoryStats.captured_at < start)
        previous = (await self.session.execute(previous_stmt)).scalar_one_or_none()

        return (
            StatsSnapshot.model_validate(current),
            StatsSnapshot.model_validate(previous) if previous is not None else None,
        )

    async def _provider_config(self, project: Project) -> ProviderConfig:
        provider = (
            project.ai_provider
            or await self._settings.get_setting(DEFAULT_AI_PROVIDER)
            or app_settings.DEFAULT_AI_PROVIDER
        )
        model = (
            project.ai_model
            or await self._settings.get_setting(DEFAULT_AI_MODEL)
            or app_settings.DEFAULT_AI_MODEL
        )
        return ProviderConfig(provider=provider, model=model)
