"""設定関連のPydanticスキーマ。

グローバル設定（APIキー、GitHubトークン、プロンプトテンプレート等）の
一覧・更新のAPI用スキーマを定義する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from repowatch.core.security import MASKED_VALUE
from repowatch.models import Setting


class SettingResponse(BaseModel):
    """設定1件のレスポンス。暗号化行の値はマスクする。"""

    key: str
    value: str
    encrypted: bool
    updated_at: Optional[datetime] = None

    @classmethod
    def from_setting(cls, setting: Setting) -> SettingResponse:
        return cls(
            key=setting.key,
            value=MASKED_VALUE if setting.encrypted else setting.value,
            encrypted=setting.encrypted,
            updated_at=setting.updated_at,
        )


class SettingUpsertRequest(BaseModel):
    """設定作成・更新リクエスト。"""

    key: str = Field(..., min_length=1, max_length=255, description="設定キー")
    value: str = Field(..., description="設定値（平文）")
    encrypted: bool = Field(
        default=False,
        description="Trueの場合は暗号化して保存し、一覧ではマスクする",
    )
