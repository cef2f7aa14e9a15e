"""Main API router."""

from fastapi import APIRouter
from larder.api.refresh import router as refresh_router
from larder.api.summary import router as summary_router
from larder.api.runs import router as runs_router
from larder.api.reports import router as reports_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(refresh_router)
api_router.include_router(summary_router)
api_router.include_router(runs_router)
api_router.include_router(reports_router)
