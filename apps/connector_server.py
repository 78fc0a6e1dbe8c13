"""
FastAPI application server for the Google Ads upload connector.

Provides health checks, the upload endpoint and a development token endpoint.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import redis.asyncio as redis
from fastapi import FastAPI, HTTPException, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from connector.cache import ResourceCache
from connector.errors import UploadError
from connector.google_ads import create_google_ads_gateway
from connector.models import BatchResult
from connector.orchestrator import UploadOrchestrator
from connector.settings import get_settings
from connector.source import StorageObjectFetcher
from connector.variants import UPLOAD_VARIANTS, get_variant
from security.auth import (
    init_jwt_config,
    JWTConfig,
    Role,
    TokenData,
    require_uploader,
    require_viewer,
    create_token,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.app_log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Global state (initialized on startup)
app_state: Dict[str, Any] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Initializes and cleans up resources on startup/shutdown.
    """
    logger.info("Starting connector...")

    redis_client = None
    if settings.redis_url:
        redis_client = redis.from_url(settings.redis_url, decode_responses=False)
        app_state["redis"] = redis_client
        logger.info(f"Using Redis: {settings.redis_url}")

    cache = ResourceCache(redis_client, lru_maxsize=settings.lru_cache_size)
    app_state["cache"] = cache

    app_state["gateway"] = create_google_ads_gateway(
        credentials=settings.google_ads_credentials(),
        cache=cache,
        use_mock=settings.use_mock_ads,
    )
    logger.info(f"Google Ads gateway initialized (mock={settings.use_mock_ads})")

    app_state["fetcher"] = StorageObjectFetcher(project=settings.gcs_project)

    init_jwt_config(JWTConfig.from_settings(settings))

    logger.info("Connector startup complete")

    yield

    logger.info("Shutting down connector...")
    if "redis" in app_state:
        await app_state["redis"].close()
        logger.info("Redis connection closed")
    logger.info("Connector shutdown complete")


app = FastAPI(
    title="Google Ads Upload Connector",
    description="Managed, rate-limited batch uploads of conversion and audience data to Google Ads",
    version="0.1.0",
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    components: Dict[str, bool]


class UploadRequest(BaseModel):
    """Upload request."""
    message: str = Field(..., description="Inline JSON-lines records or a storage reference")
    message_id: Optional[str] = Field(None, description="Correlation id for logs")
    config: Dict[str, Any] = Field(default_factory=dict, description="Connector configuration")


class TokenRequest(BaseModel):
    """Token creation request (dev only)."""
    user_id: str = Field(..., description="User ID")
    role: Role = Field(..., description="User role")


@app.exception_handler(UploadError)
async def upload_error_handler(request, exc: UploadError):
    """Handle UploadError exceptions."""
    return JSONResponse(
        status_code=exc.error_detail.http_status,
        content=exc.error_detail.to_dict(),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Overall health status and component statuses."""
    redis_healthy = "redis" not in app_state
    if not redis_healthy:
        try:
            await app_state["redis"].ping()
            redis_healthy = True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")

    gateway_ready = "gateway" in app_state

    return HealthResponse(
        status="healthy" if redis_healthy and gateway_ready else "unhealthy",
        version="0.1.0",
        components={"redis": redis_healthy, "gateway": gateway_ready},
    )


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """Readiness check for load balancers."""
    if "gateway" in app_state:
        return {"status": "ready"}
    raise HTTPException(status_code=503, detail="Not ready")


@app.get("/api/uploads", tags=["Uploads"], dependencies=[Depends(require_viewer)])
async def list_upload_apis():
    """List the supported API codes. Requires VIEWER role or higher."""
    return {"apis": [variant.describe() for variant in UPLOAD_VARIANTS.values()]}


@app.get("/api/stats", tags=["Stats"], dependencies=[Depends(require_viewer)])
async def get_stats():
    """Resource cache statistics. Requires VIEWER role or higher."""
    cache = app_state.get("cache")
    return {"cache": cache.get_stats() if cache else None}


@app.post("/api/uploads/{api_code}", tags=["Uploads"])
async def upload_records(
    api_code: str,
    request: UploadRequest,
    token: TokenData = Depends(require_uploader),
):
    """
    Upload records to the API named by ``api_code``.

    Requires UPLOADER role or higher. Remote failures are reported in the
    returned result; only invalid requests produce an error status.
    """
    variant = get_variant(api_code)
    try:
        config = variant.resolve_config(request.config)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))

    message_id = request.message_id or uuid.uuid4().hex
    logger.info(f"Upload {variant.code}:{message_id} requested by {token.sub}")

    orchestrator = UploadOrchestrator(
        variant=variant,
        gateway=app_state["gateway"],
        fetcher=app_state.get("fetcher"),
    )
    result: BatchResult = await orchestrator.upload(request.message, message_id, config)

    return {"api": variant.code, "message_id": message_id, **result.to_dict()}


@app.post("/dev/token", tags=["Development"])
async def create_dev_token(request: TokenRequest):
    """
    Create a JWT token for development/testing.

    WARNING: disabled in production.
    """
    if settings.app_env == "production":
        raise HTTPException(
            status_code=403,
            detail="Token creation endpoint disabled in production"
        )

    token = create_token(request.user_id, request.role)
    return {
        "token": token,
        "user_id": request.user_id,
        "role": request.role.value,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apps.connector_server:app",
        host=settings.app_host,
        port=settings.app_port,
        workers=1,
    )
