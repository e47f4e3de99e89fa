# frameup/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import logging
import os

from frameup.config.settings import settings
from frameup.delivery.api.editor import router
from frameup.domain.sessions import SessionStore
from frameup.infrastructure.assets.provider import LocalAssetProvider

logger = logging.getLogger("uvicorn.error")

@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = min(settings.MAX_WORKERS, os.cpu_count() or 1)
    app.state.executor = ThreadPoolExecutor(max_workers=max_workers)
    app.state.asset_provider = LocalAssetProvider(settings.ASSETS_DIR)
    app.state.sessions = SessionStore(settings.MAX_SESSIONS, settings.SESSION_IDLE_TIMEOUT)
    logger.info(f"Service '{settings.PROJECT_NAME}' started (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Shared ThreadPoolExecutor created with {max_workers} workers, assets at '{settings.ASSETS_DIR}'.")
    yield
    logger.info("Shutting down ThreadPoolExecutor...")
    app.state.sessions.clear()
    app.state.executor.shutdown(wait=True)
    logger.info("Service stopped.")

app = FastAPI(
    title="Frameup Compositor",
    description="Photo framing service: nine-patch borders, decoration stickers and flattened PNG export",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Frameup Compositor", "version": "1.0.0", "status": "ok"}

@app.get("/health")
async def health_check(request: Request):
    sessions = getattr(request.app.state, "sessions", {})
    return {"status": "ok", "service": "Frameup 1.0", "open_sessions": len(sessions)}
