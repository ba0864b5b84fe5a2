from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.router import api_router
from app.database import init_db, async_session_factory, get_db_session
from app.services.auth_service import AuthService


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def auto_seed_admin():
    """Create the bootstrap admin from FIRST_ADMIN_EMAIL / FIRST_ADMIN_PASSWORD if missing."""
    async with get_db_session() as session:
        admin = await AuthService(session).ensure_first_admin()
        if admin is None:
            logger.info("FIRST_ADMIN_EMAIL not set; skipping admin seed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables
    - Seed the first admin account
    """
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    await init_db()
    await auto_seed_admin()

    yield

    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT-based authentication with access/refresh tokens"},
    {"name": "Departments", "description": "Organisational departments"},
    {"name": "Designations", "description": "Job titles and reporting levels"},
    {"name": "Employees", "description": "Employee records, compensation and CTC breakdown"},
    {"name": "Attendance", "description": "Monthly attendance summaries"},
    {"name": "Advances", "description": "Salary advances recovered through payroll"},
    {"name": "Loans", "description": "Employee loans and EMI schedules"},
    {"name": "Pay Runs", "description": "Monthly payroll generation and finalization"},
    {"name": "Leaves", "description": "Leave requests with manager and HR approval"},
    {"name": "Letters", "description": "Appointment letters and salary annexures"},
    {"name": "Audit Logs", "description": "Change history"},
]

FULL_API_DESCRIPTION = """
## EcoVale HR API

HR and payroll for small and medium businesses.

### Authentication

All endpoints except `/auth/login`, `/auth/refresh`, `/health` and `/` require a JWT.
Include token in Authorization header: `Bearer <token>`

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Business rule violated |
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Insufficient permissions |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate or locked resource |
| 422 | Unprocessable Entity - Validation failed |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={
        "deepLinking": True,
        "persistAuthorization": True,
        "filter": True,
    },
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors become a 500 with the error type and request line."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    error_detail = {
        "detail": "Internal server error",
        "error": str(exc) if settings.DEBUG else "Internal server error",
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    response = JSONResponse(status_code=500, content=error_detail)

    # Add CORS headers if origin is allowed
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "unknown",
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check database error: %s", e)
        health_status["status"] = "unhealthy"
        health_status["database"] = f"error: {e}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
