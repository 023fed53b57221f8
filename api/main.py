"""
FastAPI application for the Fantasy Tavern betting API.

Main entry point for the REST API that exposes:
- Weekly betting lines per league
- Bet placement, balance, and history
- Settlement and the FAAB adjustment export
- League registration and sign-in
- Health checks

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import admin, auth, betting, health, leagues
from api.state import AppState
from tavern.betting.errors import WagerError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Initializes components on startup and cleans up on shutdown.
    """
    logger.info("Starting Fantasy Tavern API...")

    state = getattr(app.state, "app_state", None) or AppState()
    await state.initialize()
    app.state.app_state = state

    logger.info("Fantasy Tavern API started successfully")

    yield

    logger.info("Shutting down Fantasy Tavern API...")
    await state.shutdown()
    logger.info("Fantasy Tavern API shutdown complete")


async def wager_error_handler(request: Request, exc: WagerError) -> JSONResponse:
    """Rejected wagers carry a machine-readable code alongside the message."""
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.message})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(app_state: Optional[AppState] = None) -> FastAPI:
    """
    Build the application.

    Args:
        app_state: Pre-built state (components may be injected); a fresh
            AppState is created at startup when omitted
    """
    app = FastAPI(
        title="Fantasy Tavern API",
        description="FAAB betting on head-to-head fantasy football matchups",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    if app_state is not None:
        app.state.app_state = app_state

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"https://([a-z0-9-]+\.)?fantasytavern\.com|http://localhost:3000",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WagerError, wager_error_handler)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(betting.router, prefix="/api", tags=["Betting"])
    app.include_router(admin.router, prefix="/api", tags=["Admin"])
    app.include_router(auth.router, prefix="/api", tags=["Auth"])
    app.include_router(leagues.router, prefix="/api", tags=["Leagues"])

    @app.get("/")
    async def root():
        """Service info and links."""
        return {
            "name": "Fantasy Tavern API",
            "version": "0.1.0",
            "docs": "/api/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
