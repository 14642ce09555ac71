"""
PRFlow — FastAPI ASGI Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm.exc import StaleDataError

from prflow.api.v1.router import api_router
from prflow.config import get_settings
from prflow.core.auth_middleware import JWTAuthMiddleware
from prflow.core.exceptions import PRFlowError
from prflow.core.responses import prflow_error_handler, request_validation_handler, stale_data_handler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — logging setup on startup."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("PRFlow starting (environment=%s)", settings.ENVIRONMENT)
    yield


app = FastAPI(
    title="PRFlow",
    description="Purchase request submission and multi-level approval",
    version="0.1.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PRFlowError, prflow_error_handler)
app.add_exception_handler(StaleDataError, stale_data_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    """Health check for load balancers and Docker."""
    return {"status": "ok", "service": "prflow"}
