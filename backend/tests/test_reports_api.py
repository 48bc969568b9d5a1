"""Tests for ``/api/v1/reports`` endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient

from repowatch.core.exceptions import (
    CredentialMissingError,
    NoActivityError,
    NotFoundError,
    ProviderUnimplementedError,
    ReportGenerationError,
)
from repowatch.reporting.types import DetailLevel, ReportType


def _report(**overrides) -> SimpleNamespace:
    values = {
        "id": 11,
        "project_id": 7,
        "title": "Foo Daily Report - 2025-03-15",
        "summary": "Quiet day.",
        "content": "Overview.\n\n🔴 CI is red",
        "report_type": "DAILY",
        "detail_level": "detailed",
        "report_date": datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc),
        "issues_count": 3,
        "discussions_count": 0,
        "pull_requests_count": 1,
        "highlights": ["🔴 CI is red"],
        "metrics": {"totalActivity": 4},
        "created_at": datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


# ---------------------------------------------------------------------------
# POST /api/v1/reports/generate
# ---------------------------------------------------------------------------


class TestGenerateReport:
    """POST /api/v1/reports/generate"""

    @pytest.mark.asyncio
    async def test_generate_success(
        self,
        async_client: AsyncClient,
        test_project: MagicMock,
    ) -> None:
        with patch("repowatch.api.v1.reports.ProjectService") as MockProjects, \
                patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockProjects.return_value.get_project = AsyncMock(return_value=test_project)
            instance = AsyncMock()
            instance.generate.return_value = _report()
            MockReports.return_value = instance

            resp = await async_client.post(
                "/api/v1/reports/generate",
                json={"project_id": 7, "report_type": "WEEKLY", "detail_level": "summary"},
            )

        assert resp.status_code == 201
        body = resp.json()
        assert body["id"] == 11
        assert body["highlights"] == ["🔴 CI is red"]
        assert body["metrics"] == {"totalActivity": 4}
        instance.generate.assert_awaited_once_with(
            test_project,
            report_type=ReportType.WEEKLY,
            detail_level=DetailLevel.SUMMARY,
        )

    @pytest.mark.asyncio
    async def test_defaults_to_daily_detailed(
        self,
        async_client: AsyncClient,
        test_project: MagicMock,
    ) -> None:
        with patch("repowatch.api.v1.reports.ProjectService") as MockProjects, \
                patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockProjects.return_value.get_project = AsyncMock(return_value=test_project)
            MockReports.return_value.generate = AsyncMock(return_value=_report())

            resp = await async_client.post("/api/v1/reports/generate", json={"project_id": 7})

        assert resp.status_code == 201
        kwargs = MockReports.return_value.generate.await_args.kwargs
        assert kwargs == {"report_type": ReportType.DAILY, "detail_level": DetailLevel.DETAILED}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "status", "detail"),
        [
            (NoActivityError(), 404, "No recent data found for report generation"),
            (CredentialMissingError("azure"), 400, None),
            (ProviderUnimplementedError("anthropic"), 501, "anthropic provider not yet implemented"),
            (ReportGenerationError(), 502, "Failed to generate AI report"),
        ],
    )
    async def test_generation_errors(
        self,
        async_client: AsyncClient,
        test_project: MagicMock,
        error: Exception,
        status: int,
        detail: str | None,
    ) -> None:
        with patch("repowatch.api.v1.reports.ProjectService") as MockProjects, \
                patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockProjects.return_value.get_project = AsyncMock(return_value=test_project)
            MockReports.return_value.generate = AsyncMock(side_effect=error)

            resp = await async_client.post("/api/v1/reports/generate", json={"project_id": 7})

        assert resp.status_code == status
        if detail is not None:
            assert resp.json()["detail"] == detail
        else:
            assert "azure" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_project(self, async_client: AsyncClient) -> None:
        # mock session.get returns None, so the real ProjectService reports 404
        resp = await async_client.post("/api/v1/reports/generate", json={"project_id": 999})

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Project not found: 999"

    @pytest.mark.asyncio
    async def test_invalid_report_type(self, async_client: AsyncClient) -> None:
        resp = await async_client.post(
            "/api/v1/reports/generate",
            json={"project_id": 7, "report_type": "YEARLY"},
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# GET /api/v1/reports
# ---------------------------------------------------------------------------


class TestListReports:
    """GET /api/v1/reports"""

    @pytest.mark.asyncio
    async def test_list_with_pagination(self, async_client: AsyncClient) -> None:
        with patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockReports.return_value.list_reports = AsyncMock(
                return_value=([_report(), _report(id=12)], 45),
            )

            resp = await async_client.get(
                "/api/v1/reports",
                params={"project_id": 7, "page": 2, "per_page": 20},
            )

        assert resp.status_code == 200
        body = resp.json()
        assert [r["id"] for r in body["reports"]] == [11, 12]
        assert "content" not in body["reports"][0]
        assert body["pagination"] == {"page": 2, "per_page": 20, "total": 45, "total_pages": 3}
        MockReports.return_value.list_reports.assert_awaited_once_with(
            project_id=7, limit=20, offset=20,
        )

    @pytest.mark.asyncio
    async def test_per_page_upper_bound(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/api/v1/reports", params={"per_page": 500})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# GET /api/v1/reports/{id}
# ---------------------------------------------------------------------------


class TestGetReport:
    """GET /api/v1/reports/{report_id}"""

    @pytest.mark.asyncio
    async def test_get_report(self, async_client: AsyncClient) -> None:
        with patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockReports.return_value.get_report = AsyncMock(return_value=_report())

            resp = await async_client.get("/api/v1/reports/11")

        assert resp.status_code == 200
        assert resp.json()["content"] == "Overview.\n\n🔴 CI is red"

    @pytest.mark.asyncio
    async def test_report_not_found(self, async_client: AsyncClient) -> None:
        with patch("repowatch.api.v1.reports.ReportService") as MockReports:
            MockReports.return_value.get_report = AsyncMock(
                side_effect=NotFoundError("Report not found: 5"),
            )

            resp = await async_client.get("/api/v1/reports/5")

        assert resp.status_code == 404
