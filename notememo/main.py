"""FastAPI application hosting the NoteMemo sync API."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notememo.config import get_settings
from notememo.database import Base, create_db_engine, create_session_factory


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database on startup and create tables; dispose it on shutdown."""
    from notememo import models  # noqa: F401 - Import models to register them with Base

    engine = create_db_engine(get_settings().async_database_url)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield
    finally:
        await engine.dispose()


app = FastAPI(
    title="NoteMemo Sync",
    description="Multi-device sync server for NoteMemo notes and categories",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# --- Router includes ---
from notememo.api.categories import router as categories_router  # noqa: E402
from notememo.api.notes import router as notes_router  # noqa: E402
from notememo.api.sync import router as sync_router  # noqa: E402

app.include_router(notes_router, prefix="/api")
app.include_router(categories_router, prefix="/api")
app.include_router(sync_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
