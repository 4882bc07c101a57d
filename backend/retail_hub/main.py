"""
Retail Hub - FastAPI application entry point.
CORS enabled; health check at GET /health; DB initialized on startup;
service errors rendered as {"error": message}.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from retail_hub import config
from retail_hub.db import init_db
from retail_hub.errors import ServiceError
from retail_hub.api.admin import router as admin_router
from retail_hub.api.routes import router as api_router
from retail_hub.api.webhook import router as webhook_router

logging.basicConfig(
    level=config.log_level(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables before serving."""
    init_db()
    yield


app = FastAPI(
    title="Retail Hub",
    description="Retail operations API: sales and inventory across Shopify and SpySystem, with an AI assistant.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("request_failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def datastore_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("datastore_error", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=500, content={"error": str(exc)})


app.include_router(api_router, prefix="/api", tags=["api"])
app.include_router(admin_router, prefix="/api", tags=["admin"])
app.include_router(webhook_router, prefix="/api", tags=["webhook"])


@app.get("/health")
def health():
    """Liveness probe; does not touch the database."""
    return {"status": "ok"}
