"""FireWire — fire alarm notification circuit backend

Backend responsibilities:
  1. Interactive circuit editing sessions (main circuit + T-taps)
  2. Load and voltage-drop calculation on the circuit tree
  3. Rule-based circuit validation and calculation reports
  4. Saved configuration repository (async SQLAlchemy)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from firewire.config import get_settings
from firewire.circuit.errors import SerializationError, StructuralError
from firewire.db.session import init_db, close_db, is_db_available
from firewire.routers import configurations, sessions, validation

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: check DB and create tables. Shutdown: close DB pool."""
    await init_db()
    yield
    await close_db()


async def _structural_error_handler(request: Request, exc: StructuralError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": {
                "code": exc.code,
                "message": exc.message,
                "identifier": exc.identifier,
            }
        },
    )


async def _serialization_error_handler(request: Request, exc: SerializationError):
    logger.warning("Rejected configuration document: %s", exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        description=(
            "FireWire — fire alarm notification circuit designer.\n\n"
            "Builds the device tree, propagates loads and voltages, "
            "validates the circuit and persists configurations."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(StructuralError, _structural_error_handler)
    application.add_exception_handler(SerializationError, _serialization_error_handler)

    # ─── Editing sessions ───
    application.include_router(
        sessions.router, prefix="/api/sessions", tags=["Sessions"]
    )

    # ─── Saved configurations ───
    application.include_router(
        configurations.router, prefix="/api/configurations", tags=["Configurations"]
    )

    # ─── Stateless validation ───
    application.include_router(
        validation.router, prefix="/api/validation", tags=["Validation"]
    )

    return application


app = create_app()


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "service": "firewire",
        "version": "0.1.0",
        "database": is_db_available(),
    }
