"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.observability import setup_observability
from src.api.persistence_profile import validate_persistence_profile_guardrails
from src.api.routers.auto_invest import router as auto_invest_router
from src.api.routers.external_accounts import router as external_accounts_router
from src.api.routers.investment_policy import router as investment_policy_router
from src.api.routers.life_events import router as life_events_router
from src.api.routers.wealth import router as wealth_supportability_router


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Wealth Planning Core API",
    version="0.1.0",
    description=(
        "Recurring-investment scheduling and investment-policy validation service.\n\n"
        "Mutating endpoints accept an optional `Idempotency-Key` header; retries with the same "
        "key and payload replay the first outcome."
    ),
    openapi_tags=[
        {
            "name": "Auto-Invest Schedules",
            "description": "Recurring contribution schedules and their lifecycle.",
        },
        {
            "name": "Investment Policy",
            "description": "Versioned investment policy statements and portfolio validation.",
        },
        {
            "name": "Life Events",
            "description": "Planned life events that drive future funding needs.",
        },
        {
            "name": "External Accounts",
            "description": "Held-away assets and liabilities.",
        },
        {
            "name": "Wealth Planning Supportability",
            "description": "Runtime configuration and ledger maintenance endpoints.",
        },
    ],
    lifespan=_app_lifespan,
)

logger = logging.getLogger(__name__)
setup_observability(app)

health_router = APIRouter(tags=["Health"])


@health_router.get("/health", summary="Service Health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@health_router.get("/health/live", summary="Liveness Probe")
def health_live() -> dict[str, str]:
    return {"status": "live"}


@health_router.get("/health/ready", summary="Readiness Probe")
def health_ready() -> dict[str, str]:
    return {"status": "ready"}


app.include_router(health_router)
app.include_router(health_router, prefix="/api/v1")
app.include_router(auto_invest_router)
app.include_router(investment_policy_router)
app.include_router(life_events_router)
app.include_router(external_accounts_router)
app.include_router(wealth_supportability_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )
