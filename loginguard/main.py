from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loginguard import __version__
from loginguard.api.routes import alerts, blocks, captcha, guard, locks, maintenance, overrides
from loginguard.core.database import engine, Base
from loginguard.core.errors import InvalidIdentifierType, StoreUnavailable
from loginguard.core.logger import logger
from loginguard.config import settings
import loginguard.models  # noqa: F401

app = FastAPI(
    title="LoginGuard API",
    description="Login protection: lockouts, progressive delays, blocks and CAPTCHA challenges",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(guard.router)
app.include_router(locks.router)
app.include_router(blocks.router)
app.include_router(alerts.router)
app.include_router(captcha.router)
app.include_router(overrides.router)
app.include_router(maintenance.router)


@app.exception_handler(InvalidIdentifierType)
async def invalid_identifier_type_handler(request: Request, exc: InvalidIdentifierType):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)}
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("store_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Security store unavailable"}
    )


@app.get("/")
async def root():
    return {"status": "ok", "service": "LoginGuard"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.on_event("startup")
async def startup_event():
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as db_error:
        logger.warning("database_init_failed", error=str(db_error))
    logger.info("loginguard_startup", environment=settings.environment)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("loginguard_shutdown")
