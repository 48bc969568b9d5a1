"""Tests for report generation orchestration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from repowatch.core.exceptions import NoActivityError, NotFoundError, ReportGenerationError
from repowatch.models import ActivityRecord, Report, RepositoryStats
from repowatch.reporting.types import (
    ActivityKind,
    DetailLevel,
    ReportRequest,
    ReportType,
)
from repowatch.services.report_service import (
    ReportService,
    partition_activity,
    report_title,
    run_report_pipeline,
    window_start,
)

from tests.conftest import NOW, make_item


def _llm(content: str = "Overview.\n\n🔴 CI is red", summary: str = "All good.") -> MagicMock:
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=content)
    llm.summarize = AsyncMock(return_value=summary)
    llm.__aenter__ = AsyncMock(return_value=llm)
    llm.__aexit__ = AsyncMock(return_value=None)
    return llm


def _record(kind: ActivityKind, title: str, age: timedelta = timedelta(hours=3)) -> ActivityRecord:
    return ActivityRecord(
        project_id=7,
        github_id=1,
        kind=kind.value,
        title=title,
        body=None,
        author=None,
        created_at=NOW - age,
        updated_at=NOW - age,
    )


def _result(scalars: list | None = None, scalar=None) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = scalars or []
    result.scalar_one_or_none.return_value = scalar
    return result


class TestWindowStart:
    @pytest.mark.parametrize(
        ("report_type", "expected"),
        [
            (ReportType.DAILY, datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)),
            (ReportType.WEEKLY, datetime(2025, 3, 8, 12, 0, tzinfo=timezone.utc)),
            (ReportType.MONTHLY, datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)),
        ],
    )
    def test_window(self, report_type: ReportType, expected: datetime) -> None:
        assert window_start(report_type, NOW) == expected

    def test_month_end_is_clamped(self) -> None:
        end_of_march = datetime(2025, 3, 31, 9, 30, tzinfo=timezone.utc)
        assert window_start(ReportType.MONTHLY, end_of_march) == datetime(
            2025, 2, 28, 9, 30, tzinfo=timezone.utc
        )

    def test_january_wraps_to_december(self) -> None:
        january = datetime(2025, 1, 10, tzinfo=timezone.utc)
        assert window_start(ReportType.MONTHLY, january) == datetime(2024, 12, 10, tzinfo=timezone.utc)


class TestHelpers:
    def test_partition_keeps_order_and_normalizes(self) -> None:
        records = [
            _record(ActivityKind.PULL_REQUEST, "PR a"),
            _record(ActivityKind.ISSUE, "Issue a"),
            _record(ActivityKind.ISSUE, "Issue b"),
            _record(ActivityKind.DISCUSSION, "Disc a"),
        ]

        issues, discussions, prs = partition_activity(records)

        assert [i.title for i in issues] == ["Issue a", "Issue b"]
        assert [d.title for d in discussions] == ["Disc a"]
        assert [p.title for p in prs] == ["PR a"]
        assert issues[0].body == ""
        assert issues[0].author == "unknown"

    def test_titles(self) -> None:
        assert report_title("Foo", ReportType.DAILY, DetailLevel.DETAILED, NOW) == (
            "Foo Daily Report - 2025-03-15"
        )
        assert report_title("Foo", ReportType.WEEKLY, DetailLevel.SUMMARY, NOW) == (
            "Foo Weekly Report - 2025-03-15 (Summary)"
        )


class TestRunReportPipeline:
    @pytest.mark.asyncio
    async def test_no_activity_makes_no_model_calls(self) -> None:
        llm = _llm()

        with pytest.raises(NoActivityError) as exc_info:
            await run_report_pipeline(ReportRequest(project_name="Foo"), llm, now=NOW)

        assert exc_info.value.detail == "No recent data found for report generation"
        llm.complete.assert_not_called()
        llm.summarize.assert_not_called()

    @pytest.mark.asyncio
    async def test_detailed_report(self) -> None:
        llm = _llm()
        request = ReportRequest(project_name="Foo", issues=[make_item()])

        report = await run_report_pipeline(request, llm, now=NOW)

        assert report.content == "Overview.\n\n🔴 CI is red"
        assert report.summary == "All good."
        assert report.highlights == ["🔴 CI is red"]
        assert report.metrics.total_activity == 1
        assert llm.complete.await_args.kwargs["max_tokens"] == 3000

    @pytest.mark.asyncio
    async def test_summary_level_token_budget(self) -> None:
        llm = _llm()
        request = ReportRequest(
            project_name="Foo",
            issues=[make_item()],
            detail_level=DetailLevel.SUMMARY,
        )

        await run_report_pipeline(request, llm, now=NOW)

        prompt = llm.complete.await_args.args[0]
        assert "max 500 words" in prompt
        assert llm.complete.await_args.kwargs["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_templates_are_applied(self) -> None:
        llm = _llm()
        request = ReportRequest(project_name="Foo", issues=[make_item()])

        await run_report_pipeline(
            request,
            llm,
            report_template="Custom for {projectName}",
            summary_template="Short: {content}",
            now=NOW,
        )

        assert llm.complete.await_args.args[0].startswith("Custom for Foo")
        assert llm.summarize.await_args.args[0].startswith("Short: Overview.")

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self) -> None:
        llm = _llm()
        llm.complete.side_effect = ReportGenerationError()

        with pytest.raises(ReportGenerationError):
            await run_report_pipeline(
                ReportRequest(project_name="Foo", issues=[make_item()]), llm, now=NOW
            )
        llm.summarize.assert_not_called()


class TestReportService:
    @pytest.mark.asyncio
    async def test_generate_persists_report(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        records = [
            _record(ActivityKind.ISSUE, "Crash"),
            _record(ActivityKind.PULL_REQUEST, "Fix crash"),
        ]
        mock_session.execute.side_effect = [
            _result(scalars=records),  # activity
            _result(scalar=None),      # latest stats snapshot
        ]
        llm = _llm()
        factory = MagicMock(return_value=llm)
        service = ReportService(mock_session, llm_factory=factory, clock=lambda: NOW)

        report = await service.generate(test_project, ReportType.DAILY, DetailLevel.DETAILED)

        assert isinstance(report, Report)
        assert report.title == "Foo Daily Report - 2025-03-15"
        assert report.issues_count == 1
        assert report.pull_requests_count == 1
        assert report.discussions_count == 0
        assert report.highlights == ["🔴 CI is red"]
        assert report.metrics["totalActivity"] == 2
        assert report.metrics["repository"] is None
        mock_session.add.assert_called_once_with(report)
        mock_session.flush.assert_awaited()

        provider_config = factory.call_args.args[0]
        assert provider_config.provider == "openai"
        assert provider_config.model == "gpt-4o-mini"
        llm.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate_without_activity(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        mock_session.execute.return_value = _result(scalars=[])
        factory = MagicMock()
        service = ReportService(mock_session, llm_factory=factory, clock=lambda: NOW)

        with pytest.raises(NoActivityError):
            await service.generate(test_project)

        factory.assert_not_called()
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_falls_back_to_defaults(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        test_project.ai_provider = None
        test_project.ai_model = None
        mock_session.execute.side_effect = [
            _result(scalars=[_record(ActivityKind.ISSUE, "Crash")]),
            _result(scalar=None),
        ]
        factory = MagicMock(return_value=_llm())
        service = ReportService(mock_session, llm_factory=factory, clock=lambda: NOW)

        await service.generate(test_project)

        provider_config = factory.call_args.args[0]
        assert provider_config.provider == "openai"
        assert provider_config.model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_get_report_not_found(self, mock_session: AsyncMock) -> None:
        service = ReportService(mock_session, llm_factory=MagicMock())
        with pytest.raises(NotFoundError):
            await service.get_report(99)


def _snapshot(stars: int, open_issues: int, age: timedelta) -> RepositoryStats:
    return RepositoryStats(
        project_id=7,
        stars=stars,
        forks=10,
        watchers=3,
        open_issues=open_issues,
        commits_last_week=17,
        unique_authors_last_week=4,
        contributors_count=2,
        top_contributors=[
            {"login": "ann", "contributions": 9},
            {"login": "ben", "contributions": 4},
        ],
        captured_at=NOW - age,
    )


def _compiled(statement):
    return statement.compile(dialect=postgresql.dialect())


class TestReportServiceSnapshots:
    @pytest.mark.asyncio
    async def test_trends_and_repository_echo(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        mock_session.execute.side_effect = [
            _result(scalars=[_record(ActivityKind.ISSUE, "Crash")]),
            _result(scalar=_snapshot(stars=120, open_issues=4, age=timedelta(hours=1))),
            _result(scalar=_snapshot(stars=100, open_issues=6, age=timedelta(days=2))),
        ]
        llm = _llm()
        service = ReportService(
            mock_session,
            llm_factory=MagicMock(return_value=llm),
            clock=lambda: NOW,
        )

        report = await service.generate(test_project, ReportType.DAILY, DetailLevel.DETAILED)

        prompt = llm.complete.await_args.args[0]
        assert "## Repository Trends:" in prompt
        assert "- Stars: 120 (+20)" in prompt
        assert "- Open Issues: 4 (-2)" in prompt
        assert "- Top Contributors: @ann, @ben" in prompt
        assert report.metrics["repository"] == {
            "stars": 120,
            "forks": 10,
            "openIssues": 4,
            "weeklyCommits": 17,
        }

    @pytest.mark.asyncio
    async def test_issued_statements_use_window_bounds(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        mock_session.execute.side_effect = [
            _result(scalars=[_record(ActivityKind.ISSUE, "Crash")]),
            _result(scalar=_snapshot(stars=120, open_issues=4, age=timedelta(hours=1))),
            _result(scalar=None),
        ]
        service = ReportService(
            mock_session,
            llm_factory=MagicMock(return_value=_llm()),
            clock=lambda: NOW,
        )

        await service.generate(test_project, ReportType.WEEKLY)

        start = window_start(ReportType.WEEKLY, NOW)
        activity, latest, previous = (
            _compiled(call.args[0]) for call in mock_session.execute.await_args_list
        )

        activity_sql = str(activity)
        assert "activity_records.created_at >= " in activity_sql
        assert " OR activity_records.updated_at >= " in activity_sql
        assert list(activity.params.values()).count(start) == 2

        assert "captured_at <" not in str(latest)
        assert "repository_stats.captured_at < " in str(previous)
        assert "captured_at <=" not in str(previous)
        assert start in previous.params.values()

    @pytest.mark.asyncio
    async def test_no_previous_snapshot_means_no_trends(
        self,
        mock_session: AsyncMock,
        test_project: MagicMock,
    ) -> None:
        mock_session.execute.side_effect = [
            _result(scalars=[_record(ActivityKind.ISSUE, "Crash")]),
            _result(scalar=_snapshot(stars=120, open_issues=4, age=timedelta(hours=1))),
            _result(scalar=None),
        ]
        llm = _llm()
        service = ReportService(
            mock_session,
            llm_factory=MagicMock(return_value=llm),
            clock=lambda: NOW,
        )

        report = await service.generate(test_project)

        assert "## Repository Trends:" not in llm.complete.await_args.args[0]
        assert report.metrics["repository"]["stars"] == 120
