"""
FastAPI entry point for the Test Plan Manager.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from testplan_manager.config import settings
from testplan_manager.api import admin, plans, proxy, wizard
from testplan_manager.services.storage import init_store, reset_store

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: open the key-value store. Shutdown: release it."""
    store = init_store()
    if store.available:
        logger.info("Key-value store ready")
    yield
    reset_store()


app = FastAPI(
    title=settings.api_title,
    description="Test plan wizard with Jira and TestMo integration",
    version=settings.api_version,
    lifespan=lifespan,
)

# CORS configuration with explicit allowlist
# Base allowed origins for local development
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

# Additional origins from CORS_ALLOWED_ORIGINS (comma-separated)
for origin in settings.extra_origins():
    if origin not in ALLOWED_ORIGINS:
        ALLOWED_ORIGINS.append(origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


def _cors_headers(request: Request) -> dict:
    origin = request.headers.get("Origin", "")
    allowed_origin = origin if origin in ALLOWED_ORIGINS else ALLOWED_ORIGINS[0]
    return {
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Credentials": "true",
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to ensure CORS headers are included in error responses.
    """
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=_cors_headers(request),
        )

    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"},
        headers=_cors_headers(request),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Validation exception handler with CORS headers.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
        headers=_cors_headers(request),
    )


# Include routers
app.include_router(proxy.router, tags=["Proxy"])
app.include_router(plans.router, prefix="/api/v1", tags=["Plans"])
app.include_router(wizard.router, prefix="/api/v1", tags=["Wizard"])
app.include_router(admin.router, prefix="/api/v1", tags=["Accounts"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Test Plan Manager API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("testplan_manager.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
