"""カスタム例外クラスおよびFastAPI例外ハンドラ登録。

アプリケーション全体で使用するドメイン固有の例外階層と、
FastAPIアプリケーションへのハンドラ登録関数を提供する。
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 基底例外
# ---------------------------------------------------------------------------

class AppException(Exception):
    """アプリケーション基底例外。

    Attributes:
        status_code: HTTPステータスコード。
        detail: エラー詳細メッセージ。
    """

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "Internal server error",
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


# ---------------------------------------------------------------------------
# リクエスト・認証
# ---------------------------------------------------------------------------

class ValidationError(AppException):
    """入力値エラー (400 Bad Request)。"""

    def __init__(self, detail: str = "Invalid request") -> None:
        super().__init__(status_code=400, detail=detail)


class AuthenticationError(AppException):
    """認証エラー (401 Unauthorized)。cronエンドポイントのシークレット不一致に使用。"""

    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(status_code=401, detail=detail)


class ConflictError(AppException):
    """重複エラー (409 Conflict)。"""

    def __init__(self, detail: str = "Resource already exists") -> None:
        super().__init__(status_code=409, detail=detail)


# ---------------------------------------------------------------------------
# リソース
# ---------------------------------------------------------------------------

class NotFoundError(AppException):
    """リソース未検出エラー (404 Not Found)。"""

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=404, detail=detail)


class NoActivityError(NotFoundError):
    """対象期間にアクティビティが存在しない。

    レポート生成の「報告対象なし」を表す。モデル呼び出しもレポート保存も
    行われていないことを呼び出し側が区別できるよう、専用の型とする。
    """

    def __init__(
        self,
        detail: str = "No recent data found for report generation",
    ) -> None:
        super().__init__(detail=detail)


# ---------------------------------------------------------------------------
# レポート設定
# ---------------------------------------------------------------------------

class ConfigParseError(AppException):
    """プロジェクト別レポート設定(JSON)のパースエラー。

    レポート生成時はデフォルト設定へフォールバックするため、
    HTTPまで伝播するのは設定更新APIで不正な値を受け取った場合のみ。
    """

    def __init__(self, detail: str = "Invalid report configuration") -> None:
        super().__init__(status_code=400, detail=detail)


# ---------------------------------------------------------------------------
# AIプロバイダ
# ---------------------------------------------------------------------------

class CredentialMissingError(AppException):
    """プロバイダのAPIキーが解決できない (400 Bad Request)。

    Attributes:
        provider: 対象プロバイダ名。
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            status_code=400,
            detail=(
                f"No API key found for provider: {provider}. "
                "Please configure it in Settings."
            ),
        )


class ProviderUnimplementedError(AppException):
    """選択されたプロバイダに実装がない (501 Not Implemented)。

    Attributes:
        provider: 対象プロバイダ名。
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            status_code=501,
            detail=f"{provider} provider not yet implemented",
        )


# ---------------------------------------------------------------------------
# 外部API
# ---------------------------------------------------------------------------

class ExternalAPIError(AppException):
    """外部APIエラー (502 Bad Gateway)。"""

    def __init__(self, detail: str = "External API error") -> None:
        super().__init__(status_code=502, detail=detail)


class ReportGenerationError(ExternalAPIError):
    """レポート生成時のモデル呼び出し失敗。

    プロバイダ由来のエラー内容は含めない（ログにのみ出力する）。
    """

    def __init__(self, detail: str = "Failed to generate AI report") -> None:
        super().__init__(detail=detail)


# ---------------------------------------------------------------------------
# FastAPI例外ハンドラ登録
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """FastAPIアプリケーションにカスタム例外ハンドラを登録する。

    Args:
        app: FastAPIアプリケーションインスタンス。
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request,
        exc: AppException,
    ) -> JSONResponse:
        """AppException系例外をJSON形式でレスポンスする。"""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """未処理例外をキャッチし500レスポンスを返す。"""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
