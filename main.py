import json
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from core.exceptions import StorageFailureError
from core.lifecycle import get_transition_rules
from core.logging_config import configure_logging
from api.assets.views import router as assets_router
from api.bulk.views import router as bulk_router
from api.dashboard.views import router as dashboard_router
from api.history.views import router as history_router
from api.transitions.views import router as transitions_router

logger = logging.getLogger(__name__)


def get_cors_origins() -> list[str]:
    """Get CORS origins from environment variable or use defaults."""
    cors_env = os.environ.get("CORS_ORIGINS", "")

    # Try to parse as JSON array
    if cors_env:
        try:
            origins = json.loads(cors_env)
            if isinstance(origins, list):
                return origins
        except json.JSONDecodeError:
            # If not valid JSON, treat as comma-separated
            return [o.strip() for o in cors_env.split(",") if o.strip()]

    # Default origins for local frontends
    return [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    # Fail at startup, not on the first request, if the rule file is bad
    rules = get_transition_rules()
    logger.info(
        "starting env=%s asset_types=%s",
        settings.APP_ENV, ",".join(sorted(rules.lifecycles)),
    )
    yield


app = FastAPI(
    title="Asset Lifecycle API",
    description="API for tracking IT assets through their lifecycle states",
    version="1.0.0",
    lifespan=lifespan,
)

# Get CORS origins from environment or use defaults
cors_origins = get_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageFailureError)
async def storage_failure_handler(request: Request, exc: StorageFailureError) -> JSONResponse:
    # Full detail was logged where the database error was caught
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage failure", "diagnostic": exc.code},
    )


# Business endpoints; bulk goes before the /assets/{asset_number} routes
app.include_router(bulk_router, prefix="/api/v1")
app.include_router(assets_router, prefix="/api/v1")
app.include_router(transitions_router, prefix="/api/v1")
app.include_router(history_router, prefix="/api/v1")
app.include_router(dashboard_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["system"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
