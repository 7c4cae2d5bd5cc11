# backend/stockdb/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .apps.catalog.router import router as catalog_router
from .apps.inventory.engine import LedgerEngine
from .apps.inventory.router import router as inventory_router
from .config import Settings
from .database import create_db_and_tables, create_db_engine, create_session_factory
from .errors import install_exception_handlers
from .logging_setup import setup_logging


def create_app(settings: Optional[Settings] = None, *, create_tables: bool = True) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    db_engine = create_db_engine(settings)
    session_factory = create_session_factory(db_engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            create_db_and_tables(db_engine)
        yield
        db_engine.dispose()

    app = FastAPI(title="Stock Ledger API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    app.state.ledger_engine = LedgerEngine(session_factory, settings)

    cors_origins = settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(app)

    @app.get("/", tags=["health"])
    def read_root():
        return {"status": "ok", "message": "Stock ledger backend is running"}

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    app.include_router(catalog_router, prefix=settings.api_prefix)
    app.include_router(inventory_router, prefix=settings.api_prefix)
    return app
