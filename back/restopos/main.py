import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .auth_routes import router as auth_router
from .customers_routes import router as customers_router
from .db import check_db_connection, create_db_and_tables
from .errors import BusinessRuleError, PermissionDeniedError
from .menu_routes import router as menu_router
from .purchases_routes import router as purchases_router
from .reports_routes import router as reports_router
from .restaurants_routes import router as restaurants_router
from .sales_routes import router as sales_router
from .settings import settings
from .store import DatabaseNotConnectedError, DocumentNotFoundError
from .users_routes import router as users_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="RestoPOS API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Parse CORS origins from environment (comma-separated)
cors_origins_list = [
    origin.strip()
    for origin in settings.cors_origins.split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie holding the logged-in user and the active restaurant
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret_key,
    session_cookie="restopos_session",
    max_age=settings.session_max_age_seconds,
    same_site="lax",
    https_only=settings.is_production,
)

if settings.is_production and settings.session_secret_key == "CHANGE_THIS_IN_PRODUCTION":
    logger.warning("SESSION_SECRET_KEY is not set; sessions are signed with the default key")


# ============ ERROR HANDLERS ============

def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(DatabaseNotConnectedError)
async def database_not_connected_handler(request: Request, exc: DatabaseNotConnectedError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(DocumentNotFoundError)
async def document_not_found_handler(request: Request, exc: DocumentNotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(BusinessRuleError)
async def business_rule_handler(request: Request, exc: BusinessRuleError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    logger.warning(f"{request.method} {request.url.path} denied: {exc}")
    return _error_response(status.HTTP_403_FORBIDDEN, exc)


# ============ ROUTERS ============

app.include_router(auth_router, tags=["Auth"])
app.include_router(restaurants_router, tags=["Restaurants"])
app.include_router(users_router, tags=["Users"])
app.include_router(menu_router, tags=["Menu"])
app.include_router(customers_router, tags=["Customers"])
app.include_router(purchases_router, tags=["Purchases"])
app.include_router(sales_router, tags=["Sales"])
app.include_router(reports_router, tags=["Reports"])


@app.on_event("startup")
def on_startup() -> None:
    logger.info("Starting application...")
    create_db_and_tables()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/health/db")
def health_db() -> dict:
    """Check the database connection."""
    try:
        check_db_connection()
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Database error: {e}")
