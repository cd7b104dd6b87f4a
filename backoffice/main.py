import logging
import uuid

from fastapi import FastAPI, HTTPException, status
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.config import settings
from backoffice.auth import router as auth_router
from backoffice.routers.members import router as members_router
from backoffice.routers.memberships import router as memberships_router
from backoffice.routers.transfers import router as transfers_router
from backoffice.routers.schedules import router as schedules_router
from backoffice.routers.sales import router as sales_router
from backoffice.core import exceptions
from backoffice.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# CORS must be added before other middleware
configured_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
allow_origins = configured_origins if settings.APP_ENV == "production" else list(dict.fromkeys([*default_origins, *configured_origins]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# Exception Handlers
app.add_exception_handler(StarletteHTTPException, exceptions.http_exception_handler)  # type: ignore
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)  # type: ignore
app.add_exception_handler(IntegrityError, exceptions.integrity_exception_handler)  # type: ignore
app.add_exception_handler(Exception, exceptions.unhandled_exception_handler)  # type: ignore

# Routers
app.include_router(auth_router.router, prefix=f"{settings.API_V1_STR}/auth", tags=["Auth"])
app.include_router(members_router, prefix=f"{settings.API_V1_STR}/members", tags=["Members"])
app.include_router(memberships_router, prefix=f"{settings.API_V1_STR}/members", tags=["Memberships"])
app.include_router(transfers_router, prefix=f"{settings.API_V1_STR}/admin/members", tags=["Transfers"])
app.include_router(schedules_router, prefix=f"{settings.API_V1_STR}/schedules", tags=["Schedules"])
app.include_router(sales_router, prefix=f"{settings.API_V1_STR}/sales", tags=["Sales"])

@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database unavailable",
        ) from exc
    return {"status": "ok", "database": "ok"}


@app.on_event("startup")
async def validate_settings() -> None:
    if settings.APP_ENV != "production":
        return
    errors: list[str] = []
    if len(settings.SECRET_KEY.strip()) < 24:
        errors.append("SECRET_KEY must be at least 24 characters in production.")
    if not settings.BACKEND_CORS_ORIGINS:
        errors.append("BACKEND_CORS_ORIGINS must be explicitly configured in production.")
    if errors:
        raise RuntimeError("; ".join(errors))
