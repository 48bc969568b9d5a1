"""レポート生成パイプラインのドメイン型。

DBモデルから切り離された値オブジェクトとして、プロンプト構築・
後処理・オーケストレーションの各段で受け渡す型を定義する。
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from repowatch.reporting.config import ReportConfig


class ActivityKind(str, Enum):
    """アクティビティ種別。"""

    ISSUE = "ISSUE"
    DISCUSSION = "DISCUSSION"
    PULL_REQUEST = "PULL_REQUEST"


class ReportType(str, Enum):
    """レポート対象期間の粒度。"""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"

    @property
    def label(self) -> str:
        """タイトル用の表示名 ("Daily" など)。"""
        return self.value.capitalize()

    @property
    def timeframe(self) -> str:
        """プロンプト用の小文字表記 ("daily" など)。"""
        return self.value.lower()


class DetailLevel(str, Enum):
    """レポートの詳細度。"""

    SUMMARY = "summary"
    DETAILED = "detailed"


# ---------------------------------------------------------------------------
# 入力
# ---------------------------------------------------------------------------

class ActivityItem(BaseModel):
    """正規化済みのIssue / Discussion / Pull Request 1件。"""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    kind: ActivityKind
    title: str
    body: str = ""
    author: str = "unknown"
    created_at: datetime
    updated_at: datetime | None = None
    state: str | None = None

    @field_validator("body", mode="before")
    @classmethod
    def _empty_body(cls, value: str | None) -> str:
        return value or ""

    @field_validator("author", mode="before")
    @classmethod
    def _unknown_author(cls, value: str | None) -> str:
        return value or "unknown"


class Contributor(BaseModel):
    """上位コントリビュータ。"""

    login: str
    contributions: int = 0


class StatsSnapshot(BaseModel):
    """リポジトリ統計のスナップショット。"""

    model_config = ConfigDict(from_attributes=True)

    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    commits_last_week: int = 0
    unique_authors_last_week: int = 0
    top_contributors: list[Contributor] = Field(default_factory=list)
    captured_at: datetime | None = None


class ReportRequest(BaseModel):
    """パイプラインへの入力一式。"""

    project_name: str
    issues: list[ActivityItem] = Field(default_factory=list)
    discussions: list[ActivityItem] = Field(default_factory=list)
    pull_requests: list[ActivityItem] = Field(default_factory=list)
    stats_current: StatsSnapshot | None = None
    stats_previous: StatsSnapshot | None = None
    report_type: ReportType = ReportType.DAILY
    detail_level: DetailLevel = DetailLevel.DETAILED
    config: ReportConfig = Field(default_factory=ReportConfig.default)

    @property
    def all_items(self) -> list[ActivityItem]:
        return [*self.issues, *self.discussions, *self.pull_requests]


# ---------------------------------------------------------------------------
# 出力
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WindowCounts(_CamelModel):
    """期間内の種別ごとの件数。"""

    issues: int = 0
    discussions: int = 0
    pull_requests: int = 0


class RepositoryEcho(_CamelModel):
    """メトリクスに転記するリポジトリ統計。"""

    stars: int
    forks: int
    open_issues: int
    weekly_commits: int


class ReportMetrics(_CamelModel):
    """アクティビティレコードから算出する数値メトリクス。"""

    daily: WindowCounts = Field(default_factory=WindowCounts)
    weekly: WindowCounts = Field(default_factory=WindowCounts)
    unique_authors: int = 0
    total_activity: int = 0
    repository: RepositoryEcho | None = None


class GeneratedReport(BaseModel):
    """パイプラインの生成結果。"""

    model_config = ConfigDict(frozen=True)

    content: str
    summary: str
    highlights: list[str] = Field(default_factory=list)
    metrics: ReportMetrics = Field(default_factory=ReportMetrics)
