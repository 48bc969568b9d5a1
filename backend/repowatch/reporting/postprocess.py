"""生成済みレポート本文の後処理。

モデル出力から以下を導出する。

- summary: 2回目のモデル呼び出しによる要約（失敗時は決定的なフォールバック）
- highlights: 重要度グリフで始まる行の抽出
- metrics: 入力アクティビティから直接算出する数値（モデル出力は使わない）
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, NamedTuple

from repowatch.reporting.prompts import ELLIPSIS, build_summary_request_prompt
from repowatch.reporting.types import (
    ActivityItem,
    RepositoryEcho,
    ReportMetrics,
    ReportRequest,
    StatsSnapshot,
    WindowCounts,
)

if TYPE_CHECKING:
    from repowatch.external.llm_client import LLMClient

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY_CHARS = 200


class HighlightMarker(NamedTuple):
    severity: str
    glyph: str
    cap: int


# 抽出順 = 出力順。プロンプトの凡例と揃えること。
HIGHLIGHT_MARKERS: tuple[HighlightMarker, ...] = (
    HighlightMarker("critical", "🔴", 3),
    HighlightMarker("warning", "🟡", 2),
    HighlightMarker("success", "🟢", 2),
)

_BULLET_PREFIX = r"^\s*(?:[-*+]\s+|\d+[.)]\s+)?"


def _marker_pattern(glyph: str) -> re.Pattern[str]:
    return re.compile(_BULLET_PREFIX + re.escape(glyph) + r"\s*(\S.*?)\s*$")


_MARKER_PATTERNS = {marker.glyph: _marker_pattern(marker.glyph) for marker in HIGHLIGHT_MARKERS}


class PostProcessResult(NamedTuple):
    summary: str
    highlights: list[str]
    metrics: ReportMetrics


# ---------------------------------------------------------------------------
# highlights
# ---------------------------------------------------------------------------

def extract_highlights(content: str) -> list[str]:
    """本文からグリフ付きの行を重要度順に抽出する。

    行頭（インデントやリスト記号の後も可）にグリフがあり、その後に
    本文が続く行のみを対象とする。各重要度の上限件数まで、出現順に
    収集し、critical → warning → success の順に連結する。

    Args:
        content: モデルが生成したマークダウン本文。

    Returns:
        ``"🔴 text"`` 形式に正規化したハイライト行のリスト。
    """
    lines = (content or "").splitlines()
    highlights: list[str] = []
    for marker in HIGHLIGHT_MARKERS:
        pattern = _MARKER_PATTERNS[marker.glyph]
        found = 0
        for line in lines:
            if found >= marker.cap:
                break
            match = pattern.match(line)
            if match:
                highlights.append(f"{marker.glyph} {match.group(1)}")
                found += 1
    return highlights


# ---------------------------------------------------------------------------
# summary
# ---------------------------------------------------------------------------

def fallback_summary(content: str | None) -> str:
    """本文の最初の段落を200文字に切り詰めた要約。例外を送出しない。"""
    first_paragraph = (content or "").split("\n\n", 1)[0]
    if len(first_paragraph) > FALLBACK_SUMMARY_CHARS:
        return first_paragraph[:FALLBACK_SUMMARY_CHARS] + ELLIPSIS
    return first_paragraph


async def summarize_content(
    content: str,
    llm: LLMClient,
    template: str | None = None,
) -> str:
    """モデルで要約を生成する。失敗時や空出力時はフォールバックを返す。"""
    try:
        summary = await llm.summarize(build_summary_request_prompt(content, template))
    except Exception:
        logger.warning("Summary generation failed, using first paragraph", exc_info=True)
        return fallback_summary(content)

    summary = (summary or "").strip()
    if not summary:
        logger.warning("Summary generation returned empty text, using first paragraph")
        return fallback_summary(content)
    return summary


# ---------------------------------------------------------------------------
# metrics
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _count_since(items: Sequence[ActivityItem], since: datetime) -> int:
    return sum(1 for item in items if _as_utc(item.created_at) > since)


def _window(
    issues: Sequence[ActivityItem],
    discussions: Sequence[ActivityItem],
    pull_requests: Sequence[ActivityItem],
    since: datetime,
) -> WindowCounts:
    return WindowCounts(
        issues=_count_since(issues, since),
        discussions=_count_since(discussions, since),
        pull_requests=_count_since(pull_requests, since),
    )


def compute_metrics(
    issues: Sequence[ActivityItem],
    discussions: Sequence[ActivityItem],
    pull_requests: Sequence[ActivityItem],
    stats: StatsSnapshot | None = None,
    now: datetime | None = None,
) -> ReportMetrics:
    """アクティビティと統計スナップショットからメトリクスを算出する。

    Args:
        issues: 期間内のIssue。
        discussions: 期間内のDiscussion。
        pull_requests: 期間内のPull Request。
        stats: 最新の統計スナップショット。あれば ``repository`` に転記する。
        now: 基準時刻。省略時は現在時刻 (UTC)。

    Returns:
        ``ReportMetrics``。同じ入力と ``now`` に対して常に同じ値を返す。
    """
    now = _as_utc(now or datetime.now(timezone.utc))

    authors = {item.author for group in (issues, discussions, pull_requests) for item in group}

    repository = None
    if stats is not None:
        repository = RepositoryEcho(
            stars=stats.stars,
            forks=stats.forks,
            open_issues=stats.open_issues,
            weekly_commits=stats.commits_last_week,
        )

    return ReportMetrics(
        daily=_window(issues, discussions, pull_requests, now - timedelta(days=1)),
        weekly=_window(issues, discussions, pull_requests, now - timedelta(days=7)),
        unique_authors=len(authors),
        total_activity=len(issues) + len(discussions) + len(pull_requests),
        repository=repository,
    )


# ---------------------------------------------------------------------------
# 全体
# ---------------------------------------------------------------------------

async def postprocess(
    content: str,
    request: ReportRequest,
    llm: LLMClient,
    now: datetime | None = None,
    summary_template: str | None = None,
) -> PostProcessResult:
    """生成本文から要約・ハイライト・メトリクスを導出する。"""
    summary = await summarize_content(content, llm, template=summary_template)
    return PostProcessResult(
        summary=summary,
        highlights=extract_highlights(content),
        metrics=compute_metrics(
            request.issues,
            request.discussions,
            request.pull_requests,
            stats=request.stats_current,
            now=now,
        ),
    )
