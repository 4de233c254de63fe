"""FastAPI application exposing the back office analytics endpoints."""
from __future__ import annotations

import logging
import secrets
from typing import Any, Awaitable, Dict, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .configuration import AnalyticsConfig, load_analytics_config
from .models import serialize
from .repository import AnalyticsRepository, RepositoryNotConfiguredError, build_repository_from_env
from .service import AnalyticsService

load_dotenv()

config = load_analytics_config()
logging.basicConfig(level=config.log_level)
logger = logging.getLogger(__name__)

repository: Optional[AnalyticsRepository] = build_repository_from_env(config)
if config.auth.disabled:
    logger.warning("Admin token check is disabled; analytics endpoints are open")


class AdminAccessError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def get_config() -> AnalyticsConfig:
    return config


def get_service() -> AnalyticsService:
    if repository is None:
        raise RepositoryNotConfiguredError("ANALYTICS_DATABASE_URL is not configured.")
    return AnalyticsService(repository, config)


async def require_admin(
    authorization: Optional[str] = Header(None),
    cfg: AnalyticsConfig = Depends(get_config),
) -> None:
    """
    Gate analytics behind the admin token.

    Session handling lives in the auth service; this only checks the bearer
    token it issues to admin clients. Without a configured token every call is
    refused unless the check is explicitly disabled.
    """

    if cfg.auth.disabled:
        return
    expected = cfg.auth.admin_token
    if not expected:
        logger.error("ANALYTICS_ADMIN_TOKEN is not set; refusing analytics request")
        raise AdminAccessError(503, "Admin authentication is not configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AdminAccessError(401, "Authentication required")
    if not secrets.compare_digest(token.strip(), expected):
        raise AdminAccessError(403, "Admin privileges required")


async def _envelope(message: str, pending: Awaitable[Any]) -> Any:
    try:
        result = await pending
    except Exception as exc:
        logger.exception("%s", message)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": message, "error": str(exc)},
        )
    return {"success": True, "data": serialize(result)}


router = APIRouter(prefix="/analytics", tags=["analytics"], dependencies=[Depends(require_admin)])


@router.get("/dashboard")
async def dashboard_stats(service: AnalyticsService = Depends(get_service)) -> Any:
    return await _envelope("Error getting dashboard stats", service.dashboard_stats())


@router.get("/users/growth")
async def user_growth(
    period: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting user growth", service.user_growth(period))


@router.get("/activity/distribution")
async def activity_distribution(service: AnalyticsService = Depends(get_service)) -> Any:
    return await _envelope("Error getting activity distribution", service.activity_distribution())


@router.get("/assets/usage")
async def asset_usage(
    period: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting asset usage", service.asset_usage(period))


@router.get("/assets/top")
async def top_assets(
    limit: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting top assets", service.top_assets(limit))


@router.get("/assets/categories/top")
async def top_categories(
    limit: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting top categories", service.top_categories(limit))


@router.get("/revenue")
async def revenue(
    period: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting revenue stats", service.revenue(period))


@router.get("/activities/recent")
async def recent_activities(
    limit: Optional[str] = Query(None),
    service: AnalyticsService = Depends(get_service),
) -> Any:
    return await _envelope("Error getting recent activities", service.recent_activities(limit))


app = FastAPI(title="Tutoring Back Office Analytics API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AdminAccessError)
async def _admin_access_error(request: Request, exc: AdminAccessError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RepositoryNotConfiguredError)
async def _repository_not_configured(request: Request, exc: RepositoryNotConfiguredError) -> JSONResponse:
    logger.error("Analytics request without storage: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Analytics storage is unavailable", "error": str(exc)},
    )


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


app.include_router(router)
