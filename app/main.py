from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.endpoints import auth, password_reset, registration
from app.core.config import settings
from app.core.logging import capture_error, init_sentry, setup_logging
from app.db.base import Base
from app.db.session import engine
from app.helpers.getters import isProductionMode, utcnow
from app.middleware.logging import AccessLoggingMiddleware

# Initialize logging and error tracking
setup_logging()
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema is managed by migrations in production
    if not isProductionMode():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="""
## Authentication

- `POST /api/auth/login` with `{"identifier": "...", "password": "..."}`.
  The identifier is an email, a student registration number (`DENT/YYYY/NNN`)
  or a lecturer staff id (`LEC/NNN`).
- Five failed attempts lock the account for 15 minutes (HTTP 423).
- Use the returned `access_token` as `Authorization: Bearer <token>`.

## Password reset

`/api/password-reset/request` → `/verify-otp` → `/reset`

## Registration

`/api/registration/send-otp` → `/verify-and-register`
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AccessLoggingMiddleware, enabled=settings.MODE != "test")

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(password_reset.router, prefix="/api/password-reset", tags=["password-reset"])
app.include_router(registration.router, prefix="/api/registration", tags=["registration"])


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    capture_error(exc, context={"request": {"method": request.method, "path": request.url.path}})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/api/health", tags=["misc"])
async def health():
    return {"status": "ok", "message": f"{settings.APP_NAME} API is running", "timestamp": utcnow().isoformat()}


@app.get("/", tags=["misc"])
def root():
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/auth",
            "password_reset": "/api/password-reset",
            "registration": "/api/registration",
        },
    }
