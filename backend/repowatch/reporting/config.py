"""プロジェクト別レポート設定の定義とマージ。

プロジェクトに保存された部分的なJSON上書きを、システムのデフォルト設定と
セクション単位でマージして完全な ``ReportConfig`` を得る。

マージ規則:
    - focusAreas / metrics / preferences / alerts: キー単位の浅いマージ。
      上書き側にあるキーは null でも優先され、無いキーはデフォルトが残る。
      型として不正な値はそのキーだけ無視する。
    - customSections: 上書き側に存在すれば丸ごと置き換え。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from repowatch.core.exceptions import ConfigParseError

logger = logging.getLogger(__name__)

# キー単位でマージするオブジェクト型セクション
OBJECT_SECTIONS: tuple[str, ...] = ("focusAreas", "metrics", "preferences", "alerts")


class _Section(BaseModel):
    # 未知のキーも保持する（UIが追加したフォーカス領域など）
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class FocusAreas(_Section):
    issues: bool | None = None
    pull_requests: bool | None = None
    discussions: bool | None = None
    security: bool | None = None
    performance: bool | None = None
    documentation: bool | None = None


class MetricsConfig(_Section):
    stars: bool | None = None
    forks: bool | None = None
    contributors: bool | None = None
    code_velocity: bool | None = None
    community_engagement: bool | None = None


class Preferences(_Section):
    include_charts: bool | None = None
    max_issues_shown: int | None = None
    max_prs_shown: int | None = Field(default=None, alias="maxPRsShown")
    highlight_new_contributors: bool | None = None
    include_code_snippets: bool | None = None


class CustomSection(_Section):
    title: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class Alerts(_Section):
    critical_issue_keywords: list[str] | None = None
    security_keywords: list[str] | None = None
    performance_keywords: list[str] | None = None
    min_response_time: float | None = None  # hours


class ReportConfig(BaseModel):
    """完全にマージ済みのレポート設定。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    focus_areas: FocusAreas = Field(default_factory=FocusAreas)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    preferences: Preferences = Field(default_factory=Preferences)
    custom_sections: list[CustomSection] = Field(default_factory=list)
    alerts: Alerts = Field(default_factory=Alerts)

    @classmethod
    def default(cls) -> ReportConfig:
        """システムデフォルト設定のコピーを返す。"""
        return DEFAULT_REPORT_CONFIG.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        """camelCaseキーの辞書に変換する（null を明示した値も残す）。"""
        return self.model_dump(by_alias=True)

    def enabled_focus_areas(self) -> list[str]:
        """有効化されているフォーカス領域名を定義順に返す。"""
        areas = self.focus_areas.model_dump(by_alias=True, exclude_none=True)
        return [name for name, enabled in areas.items() if enabled]


DEFAULT_REPORT_CONFIG = ReportConfig(
    focus_areas=FocusAreas(
        issues=True,
        pull_requests=True,
        discussions=True,
        security=True,
        performance=True,
        documentation=False,
    ),
    metrics=MetricsConfig(
        stars=True,
        forks=True,
        contributors=True,
        code_velocity=True,
        community_engagement=True,
    ),
    preferences=Preferences(
        include_charts=False,
        max_issues_shown=50,
        max_prs_shown=30,
        highlight_new_contributors=True,
        include_code_snippets=False,
    ),
    custom_sections=[],
    alerts=Alerts(
        critical_issue_keywords=["critical", "urgent", "blocker", "security"],
        security_keywords=["vulnerability", "exploit", "CVE"],
        performance_keywords=["slow", "performance", "memory leak", "crash"],
        min_response_time=24,
    ),
)


# ---------------------------------------------------------------------------
# パース・マージ
# ---------------------------------------------------------------------------

def parse_report_config(override_json: str) -> dict[str, Any]:
    """保存済みの上書きJSONを厳密にパースする。

    Args:
        override_json: プロジェクトに保存されたJSON文字列。

    Returns:
        パース済みの辞書。

    Raises:
        ConfigParseError: JSONとして不正、またはオブジェクトでない場合。
    """
    try:
        parsed = json.loads(override_json)
    except (TypeError, ValueError) as exc:
        raise ConfigParseError(f"Report configuration is not valid JSON: {exc}")

    if not isinstance(parsed, dict):
        raise ConfigParseError("Report configuration must be a JSON object")
    return parsed


_SECTION_MODELS: dict[str, type[_Section]] = {
    "focusAreas": FocusAreas,
    "metrics": MetricsConfig,
    "preferences": Preferences,
    "alerts": Alerts,
}


def _merge_section(
    section: str,
    base: dict[str, Any],
    override: Any,
    strict: bool,
) -> _Section:
    model = _SECTION_MODELS[section]
    if override is None:
        return model.model_validate(base)
    if not isinstance(override, dict):
        if strict:
            raise ConfigParseError(f"Report configuration section {section} must be an object")
        logger.warning("Ignoring report config section %s: not an object", section)
        return model.model_validate(base)

    accepted = dict(base)
    for key, value in override.items():
        candidate = {**accepted, key: value}
        try:
            model.model_validate(candidate)
        except PydanticValidationError as exc:
            if strict:
                raise ConfigParseError(
                    f"Report configuration has an invalid value for {section}.{key}: {exc}"
                )
            logger.warning("Ignoring invalid report config value %s.%s", section, key)
            continue
        accepted = candidate
    return model.model_validate(accepted)


def _merge_custom_sections(
    base: list[CustomSection],
    override: Any,
    strict: bool,
) -> list[CustomSection]:
    if override is None:
        return [section.model_copy(deep=True) for section in base]
    try:
        if not isinstance(override, list):
            raise ConfigParseError("Report configuration customSections must be a list")
        return [CustomSection.model_validate(item) for item in override]
    except (ConfigParseError, PydanticValidationError) as exc:
        if strict:
            raise ConfigParseError(f"Report configuration has invalid customSections: {exc}")
        logger.warning("Ignoring invalid report config customSections")
        return [section.model_copy(deep=True) for section in base]


def merge_report_config(
    override: dict[str, Any],
    defaults: ReportConfig,
    strict: bool = False,
) -> ReportConfig:
    """パース済みの上書き辞書をデフォルト設定にマージする。

    上書き側に存在するキーは値が null でもそのまま優先する。
    不正な値はキー単位で無視し、そのキーだけデフォルトを残す。

    Args:
        override: パース済みの上書き辞書。
        defaults: マージ元となるデフォルト設定。
        strict: True の場合、不正な値を無視せず例外にする（保存時の検証用）。

    Raises:
        ConfigParseError: ``strict`` で不正な値が含まれる場合。
    """
    base = defaults.to_dict()
    sections = {
        section: _merge_section(section, base.get(section, {}), override.get(section), strict)
        for section in OBJECT_SECTIONS
    }
    return ReportConfig(
        focus_areas=sections["focusAreas"],
        metrics=sections["metrics"],
        preferences=sections["preferences"],
        alerts=sections["alerts"],
        custom_sections=_merge_custom_sections(
            defaults.custom_sections, override.get("customSections"), strict,
        ),
    )


def resolve_report_config(
    override_json: str | None,
    defaults: ReportConfig = DEFAULT_REPORT_CONFIG,
) -> ReportConfig:
    """プロジェクトの上書きJSONとデフォルト設定をマージする。

    上書きが無い、またはパースできない場合はデフォルトをそのまま返す
    （パース失敗はログに残して処理を継続する）。

    Args:
        override_json: プロジェクト別の上書きJSON。Noneまたは空文字可。
        defaults: マージ元となるデフォルト設定。

    Returns:
        全キーが埋まった ``ReportConfig``。
    """
    if not override_json:
        return defaults

    try:
        override = parse_report_config(override_json)
        return merge_report_config(override, defaults)
    except ConfigParseError as exc:
        logger.warning("Failed to parse report config, using defaults: %s", exc.detail)
        return defaults


def dump_report_config(config: ReportConfig | dict[str, Any]) -> str:
    """上書き設定を保存用のJSON文字列に変換する。"""
    if isinstance(config, ReportConfig):
        config = config.to_dict()
    return json.dumps(config, ensure_ascii=False, sort_keys=True)
