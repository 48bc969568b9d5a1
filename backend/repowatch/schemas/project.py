"""プロジェクト関連のPydanticスキーマ。

監視対象プロジェクトの登録・更新、レポート設定の取得・更新の
API用スキーマを定義する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    """プロジェクト登録リクエスト。"""

    name: str = Field(..., min_length=1, max_length=255, description="プロジェクト名")
    github_url: str = Field(
        ...,
        min_length=1,
        description="GitHubリポジトリURL（例: https://github.com/owner/repo）",
    )
    description: Optional[str] = Field(default=None, description="説明")


class ProjectUpdateRequest(BaseModel):
    """プロジェクト更新リクエスト。未指定の項目は変更しない。"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = Field(default=None, description="定期同期の対象にするか")
    ai_provider: Optional[str] = Field(default=None, description="AIプロバイダ名")
    ai_model: Optional[str] = Field(default=None, description="AIモデル名")


class ProjectResponse(BaseModel):
    """プロジェクト情報レスポンス。"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    github_url: str
    owner: str
    repo: str
    is_active: bool
    ai_provider: str
    ai_model: str
    last_sync_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    reports_count: int = Field(default=0, description="生成済みレポート数")


class ProjectListResponse(BaseModel):
    """プロジェクト一覧レスポンス。"""

    projects: list[ProjectResponse]


class ReportConfigResponse(BaseModel):
    """プロジェクト別レポート設定レスポンス。"""

    config: Optional[dict[str, Any]] = Field(
        default=None,
        description="保存済みの上書き設定（camelCase）。未設定ならNone",
    )
    resolved: dict[str, Any] = Field(
        description="デフォルト設定とマージした実際に使われる設定",
    )


class ReportConfigUpdateRequest(BaseModel):
    """レポート設定更新リクエスト。Noneで上書きを削除する。"""

    config: Optional[dict[str, Any]] = None
