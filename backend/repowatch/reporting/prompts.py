"""レポート生成用プロンプトの構築。

詳細度に応じて2種類のプロンプトを組み立てる。

- detailed: リポジトリ推移、Issue/Discussion/PR一覧、分析指示、
  設定由来の追加セクション（カスタムセクション、アラート条件、フォーカス領域）
- summary: 件数と統計1行のみを渡す経営層向けの簡潔なプロンプト

設定画面から保存されたテンプレートで指示部分を差し替えられる。
テンプレートのプレースホルダは ``{projectName}`` のような波括弧付きの
トークン単位で、大文字小文字を区別し、全出現箇所を1パスで置換する。
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import datetime

from repowatch.reporting.config import ReportConfig
from repowatch.reporting.types import (
    ActivityItem,
    DetailLevel,
    ReportRequest,
    StatsSnapshot,
)

BODY_PREVIEW_CHARS = 200
ELLIPSIS = "..."
DEFAULT_MAX_ISSUES = 50
DEFAULT_MAX_PRS = 30
MAX_DISCUSSIONS_SHOWN = 30
TOP_CONTRIBUTORS_SHOWN = 3

REPORT_PLACEHOLDERS: tuple[str, ...] = (
    "projectName",
    "timeframe",
    "issueCount",
    "issues",
    "discussionCount",
    "discussions",
    "prCount",
    "pullRequests",
)
SUMMARY_PLACEHOLDERS: tuple[str, ...] = ("content",)

DEFAULT_SUMMARY_TEMPLATE = """Summarize the following GitHub project report in 2-3 sentences, highlighting the most important points:

{content}

Summary:"""

_ANALYSIS_INSTRUCTIONS = """Please provide a structured report with the following sections:

1. **Executive Summary** (3-4 sentences)
   - Overall project health and activity level
   - Key metrics and their trends
   - Most significant developments

2. **Trend Analysis**
   - Compare current activity with historical patterns
   - Identify acceleration or deceleration in different areas
   - Highlight any anomalies or significant changes

3. **Issue Clustering & Analysis**
   - Group similar issues into themes (e.g., "Performance", "UI/UX", "Security", "Documentation")
   - For each cluster, provide:
     - Number of issues
     - Severity assessment (Critical/High/Medium/Low)
     - Common root causes if identifiable
     - Estimated impact on users

4. **Development Velocity**
   - PR merge rate and time to merge
   - Code review activity
   - Key contributors and their focus areas
   - Technical debt indicators

5. **Community Health Metrics**
   - Response time to issues
   - Engagement rate (comments, reactions)
   - New vs returning contributors
   - Geographic/timezone distribution if apparent

6. **Risk Assessment**
   - Critical unresolved issues
   - Security concerns
   - Maintainer burnout indicators
   - Technical debt accumulation

7. **Recommendations** (Prioritized)
   - Immediate actions (next 1-3 days)
   - Short-term improvements (next week)
   - Strategic considerations (next month)

8. **Notable Achievements**
   - Resolved critical issues
   - Successful feature launches
   - Community milestones

Use data-driven insights and avoid generic statements. Include specific issue numbers, PR numbers, and contributor names where relevant. Format with clear markdown, use tables for metrics where appropriate, and highlight critical items with bold or emoji indicators (🔴 Critical, 🟡 Warning, 🟢 Good)."""

_SUMMARY_INSTRUCTIONS = """Provide a brief report (max 500 words) with ONLY these sections:

1. **Project Status** (1-2 sentences)
   - Overall health indicator (🟢 Healthy, 🟡 Needs Attention, 🔴 Critical)
   - Key metric highlights

2. **Top 3 Priorities**
   - Most critical issues or decisions needed
   - Use bullet points with specific issue/PR numbers

3. **Key Metrics**
   - Activity trends (↑ ↓ →)
   - Community engagement level
   - Development velocity

4. **Action Required** (if any)
   - Immediate steps needed
   - Critical blockers

Keep it executive-friendly, data-driven, and actionable. Focus on what matters most."""


# ---------------------------------------------------------------------------
# 共通ヘルパー
# ---------------------------------------------------------------------------

def truncate_body(text: str, limit: int = BODY_PREVIEW_CHARS) -> str:
    """本文を ``limit`` 文字で切り詰め、切り詰めた場合のみ "..." を付ける。"""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def format_date(value: datetime) -> str:
    """一覧表示用の日付 (M/D/YYYY)。"""
    return f"{value.month}/{value.day}/{value.year}"


PLACEHOLDER_PATTERN = re.compile(
    r"\{(" + "|".join(re.escape(name) for name in REPORT_PLACEHOLDERS + SUMMARY_PLACEHOLDERS) + r")\}"
)


def render_template(template: str, values: Mapping[str, object]) -> str:
    """テンプレートのプレースホルダを値で置換する。

    固定のプレースホルダ名のうち ``values`` にある ``{name}`` トークンだけを対象とし、
    全出現箇所を1パスで置換する。置換後の値は再走査しないため、
    値の中に別のプレースホルダが含まれていても展開されない。
    未知の波括弧はそのまま残す。

    Args:
        template: テンプレート文字列。
        values: プレースホルダ名と値の対応。

    Returns:
        置換後の文字列。
    """
    if not values:
        return template

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(values[name]) if name in values else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def _render_item(item: ActivityItem, include_state: bool = False) -> str:
    line = f"- **{item.title}** by @{item.author} ({format_date(item.created_at)})"
    if include_state and item.state:
        line += f" [{item.state}]"
    if item.body:
        line += f"\n  {truncate_body(item.body)}"
    return line


def render_listing(
    items: Sequence[ActivityItem],
    limit: int,
    include_state: bool = False,
) -> str:
    """アクティビティ一覧を先頭 ``limit`` 件までマークダウンで描画する。"""
    shown = items[:limit]
    if not shown:
        return "- None"
    return "\n".join(_render_item(item, include_state) for item in shown)


def _signed(value: int) -> str:
    return f"{value:+d}"


def render_trends(current: StatsSnapshot, previous: StatsSnapshot) -> str:
    """前回スナップショットとの差分からリポジトリ推移ブロックを描画する。"""
    contributors = ", ".join(
        f"@{c.login}" for c in current.top_contributors[:TOP_CONTRIBUTORS_SHOWN]
    )
    lines = [
        "## Repository Trends:",
        f"- Stars: {current.stars} ({_signed(current.stars - previous.stars)})",
        f"- Forks: {current.forks} ({_signed(current.forks - previous.forks)})",
        (
            f"- Open Issues: {current.open_issues} "
            f"({_signed(current.open_issues - previous.open_issues)})"
        ),
        (
            f"- Weekly Activity: {current.commits_last_week} commits, "
            f"{current.unique_authors_last_week} unique authors"
        ),
        f"- Top Contributors: {contributors or 'None'}",
    ]
    return "\n".join(lines)


def _keywords(values: Sequence[str] | None) -> str:
    return ", ".join(values) if values else "None"


def render_config_sections(config: ReportConfig) -> list[str]:
    """設定由来の追加ブロック（カスタムセクション、アラート、フォーカス領域）。"""
    blocks: list[str] = []

    if config.custom_sections:
        lines = ["Additional Custom Sections to Include:"]
        for section in config.custom_sections:
            lines.append(f"- **{section.title}**: {section.description}")
            lines.append(f"  Keywords to watch for: {_keywords(section.keywords)}")
        blocks.append("\n".join(lines))

    alerts = config.alerts
    if (
        alerts.critical_issue_keywords
        or alerts.security_keywords
        or alerts.performance_keywords
        or alerts.min_response_time
    ):
        lines = [
            "Alert Criteria:",
            f"- Critical Issue Keywords: {_keywords(alerts.critical_issue_keywords)}",
            f"- Security Keywords: {_keywords(alerts.security_keywords)}",
            f"- Performance Keywords: {_keywords(alerts.performance_keywords)}",
        ]
        if alerts.min_response_time:
            lines.append(
                "- Flag issues without response for more than "
                f"{alerts.min_response_time:g} hours"
            )
        blocks.append("\n".join(lines))

    focus = config.enabled_focus_areas()
    if focus:
        lines = ["Focus Areas (emphasize these aspects):"]
        lines.extend(f"- {area}" for area in focus)
        blocks.append("\n".join(lines))

    return blocks


# ---------------------------------------------------------------------------
# detailed
# ---------------------------------------------------------------------------

def _listing_limits(config: ReportConfig) -> tuple[int, int]:
    prefs = config.preferences
    return (
        prefs.max_issues_shown or DEFAULT_MAX_ISSUES,
        prefs.max_prs_shown or DEFAULT_MAX_PRS,
    )


def template_values(request: ReportRequest) -> dict[str, str]:
    """レポートテンプレートのプレースホルダ値を組み立てる。"""
    max_issues, max_prs = _listing_limits(request.config)
    return {
        "projectName": request.project_name,
        "timeframe": request.report_type.timeframe,
        "issueCount": str(len(request.issues)),
        "issues": render_listing(request.issues, max_issues),
        "discussionCount": str(len(request.discussions)),
        "discussions": render_listing(request.discussions, MAX_DISCUSSIONS_SHOWN),
        "prCount": str(len(request.pull_requests)),
        "pullRequests": render_listing(
            request.pull_requests, max_prs, include_state=True,
        ),
    }


def build_detailed_prompt(request: ReportRequest, template: str | None = None) -> str:
    """詳細分析用プロンプトを構築する。

    保存済みテンプレートがある場合は、導入文・一覧・分析指示の部分を
    テンプレートの展開結果で置き換える。推移ブロックと設定由来の
    追加ブロックはどちらの場合も付与する。

    Args:
        request: レポート入力。
        template: 設定画面で保存されたテンプレート。

    Returns:
        プロンプト文字列。
    """
    values = template_values(request)
    blocks: list[str] = []

    trends = None
    if request.stats_current is not None and request.stats_previous is not None:
        trends = render_trends(request.stats_current, request.stats_previous)

    if template:
        if trends:
            blocks.append(trends)
        blocks.append(render_template(template, values))
    else:
        blocks.append(
            f"Generate a comprehensive {values['timeframe']} report for the "
            f"GitHub project \"{values['projectName']}\".\n\n"
            "You are an expert GitHub project analyst. Your task is to analyze "
            "the following data and provide actionable insights with trend "
            "analysis, issue clustering, and impact assessment."
        )
        if trends:
            blocks.append(trends)
        blocks.append(
            f"## Recent Issues ({values['issueCount']} items):\n{values['issues']}"
        )
        blocks.append(
            f"## Recent Discussions ({values['discussionCount']} items):\n"
            f"{values['discussions']}"
        )
        blocks.append(
            f"## Recent Pull Requests ({values['prCount']} items):\n"
            f"{values['pullRequests']}"
        )
        blocks.append(_ANALYSIS_INSTRUCTIONS)

    blocks.extend(render_config_sections(request.config))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# summary
# ---------------------------------------------------------------------------

def build_summary_prompt(request: ReportRequest) -> str:
    """経営層向けの簡潔なサマリー用プロンプトを構築する。"""
    blocks = [
        f"Generate a concise {request.report_type.timeframe} executive summary "
        f"for the GitHub project \"{request.project_name}\"."
    ]

    stats = request.stats_current
    if stats is not None:
        blocks.append(
            f"Repository: {stats.stars} stars, {stats.forks} forks, "
            f"{stats.open_issues} open issues, "
            f"{stats.commits_last_week} commits last week"
        )

    blocks.append(
        "Activity Summary:\n"
        f"- {len(request.issues)} new/updated issues\n"
        f"- {len(request.discussions)} discussions\n"
        f"- {len(request.pull_requests)} pull requests"
    )
    blocks.append(_SUMMARY_INSTRUCTIONS)
    return "\n\n".join(blocks)


def build_prompt(request: ReportRequest, template: str | None = None) -> str:
    """詳細度に応じてプロンプトを構築する。

    保存済みテンプレートは detailed のみに適用する。
    """
    if request.detail_level == DetailLevel.SUMMARY:
        return build_summary_prompt(request)
    return build_detailed_prompt(request, template=template)


def build_summary_request_prompt(content: str, template: str | None = None) -> str:
    """生成済みレポートを2〜3文に要約させるプロンプトを構築する。"""
    return render_template(template or DEFAULT_SUMMARY_TEMPLATE, {"content": content})
