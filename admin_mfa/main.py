import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admin_mfa.api.v1.auth import router as auth_router
from admin_mfa.api.v1.mfa import router as mfa_router
from admin_mfa.api.v1.mfa_config import router as mfa_config_router
from admin_mfa.core.config import settings
from admin_mfa.core.db import SessionLocal
from admin_mfa.core.errors import MfaError
from admin_mfa.services.mfa_config import ensure_default_config

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # la fila de config tiene que existir desde el primer request
    async with SessionLocal() as db:
        await ensure_default_config(db)
    logger.info("MFA config bootstrapped")
    yield


app = FastAPI(title="Admin MFA API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MfaError)
async def mfa_error_handler(request: Request, exc: MfaError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"data": None, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"data": None, "error": "Invalid request body"},
    )


app.include_router(auth_router)
app.include_router(mfa_router)
app.include_router(mfa_config_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
