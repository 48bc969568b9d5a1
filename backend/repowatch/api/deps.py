"""FastAPI依存性注入モジュール。

cronエンドポイント用のシークレット検証を提供する。
データベースセッションは ``repowatch.database.get_session`` を再利用する。
"""

from __future__ import annotations

from fastapi import Header

from repowatch.config import settings
from repowatch.core.exceptions import AuthenticationError
from repowatch.core.security import secrets_match
from repowatch.database import get_session  # noqa: F401 – re-export for convenience


async def verify_cron_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """``Authorization: Bearer <CRON_SECRET>`` を検証する。

    CRON_SECRET が未設定の場合は常に拒否する。

    Raises:
        AuthenticationError: ヘッダーが無い、または一致しない場合。
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets_match(token, settings.CRON_SECRET):
        raise AuthenticationError()
