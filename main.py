"""
Guest Directory - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.core.config import settings
from app.core.db import engine, SessionLocal
from app.api import routes_admin, routes_guest, routes_public
from app.services.container import ServiceContainer, build_container
from app.services.repositories import build_remote_store
from app.services.storage import SqlKeyValueStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the application; ``services`` replaces the default wiring"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        container = services or build_container(
            settings,
            SqlKeyValueStore(engine, SessionLocal),
            remote=build_remote_store(settings),
        )
        app.state.services = container
        await container.start()
        yield
        await container.stop()
        logger.info("Application shutdown")

    app = FastAPI(
        title="Guest Directory",
        description="Guest list ingestion, name lookup and invitation downloads",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes_public.router, tags=["public"])
    app.include_router(routes_guest.router, prefix="/guest", tags=["guest"])
    app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])

    return app

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
