"""API v1 ルーター集約モジュール。

各ドメインのルーターを統合し、プレフィックスとタグを設定する。
"""

from __future__ import annotations

from fastapi import APIRouter

from repowatch.api.v1.projects import router as projects_router
from repowatch.api.v1.providers import router as providers_router
from repowatch.api.v1.reports import router as reports_router
from repowatch.api.v1.settings import router as settings_router
from repowatch.api.v1.sync import router as sync_router

router = APIRouter()

router.include_router(
    projects_router,
    prefix="/projects",
    tags=["projects"],
)

router.include_router(
    reports_router,
    prefix="/reports",
    tags=["reports"],
)

router.include_router(
    settings_router,
    prefix="/settings",
    tags=["settings"],
)

router.include_router(
    sync_router,
    prefix="/sync",
    tags=["sync"],
)

router.include_router(
    providers_router,
    prefix="/providers",
    tags=["providers"],
)
