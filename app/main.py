from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import AsyncSessionLocal, init_db
from app.core.limiter import limiter
from app.features.auth.routes import router as auth_router
from app.features.users.routes import router as user_router
from app.features.permissions.routes import router as permission_router
from app.features.permissions.manager import InvalidPermissionArgument, PermissionManager
from app.features.permissions.repository import SqlAlchemyRoleRepository
from app.features.projects.routes import router as project_router
from app.features.filings.routes import router as filing_router
from app.features.evidence.routes import router as evidence_router
from app.features.staff.routes import router as staff_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Interventoría Backend",
    description="Oversight project management API with role-based permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.JWT_SECRET == config.DEFAULT_JWT_SECRET:
    log.warning("JWT_SECRET is not set; using the insecure default")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if not error.get("loc") or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key in ("__root__", "body"):
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(InvalidPermissionArgument)
async def invalid_permission_argument_handler(_request: Request, exc: InvalidPermissionArgument):
    log.info("Invalid permission argument: %s", exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database and default roles on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")

    if config.SEED_DEFAULT_ROLES:
        async with AsyncSessionLocal() as session:
            created = await PermissionManager(SqlAlchemyRoleRepository(session)).seed_default_roles()
            await session.commit()
        if created:
            log.info(f"Created {created} default roles")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Interventoría Backend API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require a Bearer token or the auth_token cookie",
            "public_endpoints": ["/", "/health", "/auth/login"]
        },
        "features": {
            "auth": "JWT login, profile and password change",
            "users": "User management gated by usuarios permissions",
            "permissions": "Roles with (resource, actions, conditions) entries and permission checks",
            "projects": "Oversight projects with budget, participants and milestones",
            "filings": "Registered correspondence (radicados) with due dates and versions",
            "evidence": "Evidence records referencing uploaded files",
            "staff": "Field staff with contract, status and project assignment"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(project_router, prefix="/projects", tags=["projects"])
app.include_router(filing_router, prefix="/filings", tags=["filings"])
app.include_router(evidence_router, prefix="/evidence", tags=["evidence"])
app.include_router(staff_router, prefix="/staff", tags=["staff"])
