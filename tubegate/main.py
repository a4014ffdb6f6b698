"""
FastAPI streaming gateway
Search, inspect and play YouTube videos through a self-hosted relay
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import yt_dlp

from . import __version__ as VERSION
from .config import Settings
from .credentials import AuthContext, load_auth_context
from .errors import GatewayError, InputValidationError
from .images import IMAGE_CACHE_CONTROL, ImageRelay
from .metadata import MetadataResolver
from .models import ErrorCode, ErrorDetail, ErrorResponse, HealthResponse, StreamStats
from .resolver import SourceResolver
from .search import SearchService
from .streaming import MediaStreamResponse
from .validation import validate_media_kind, validate_video_id

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    auth: Optional[AuthContext] = None,
    resolver: Optional[SourceResolver] = None,
    metadata: Optional[MetadataResolver] = None,
    search_service: Optional[SearchService] = None,
    image_relay: Optional[ImageRelay] = None,
    load_credentials: bool = True,
) -> FastAPI:
    """
    Build the application. Settings and credentials are read once here and
    handed to every service; tests inject fakes through the keyword arguments.
    """
    settings = settings or Settings.from_env()
    if auth is None and load_credentials:
        auth = load_auth_context(settings)

    search_service = search_service or SearchService(settings)
    resolver = resolver or SourceResolver(settings, auth)
    metadata = metadata or MetadataResolver(settings, search_service, auth)
    image_relay = image_relay or ImageRelay()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for startup/shutdown logging"""
        logger.info("🚀 Starting tubegate streaming gateway...")
        logger.info(f"Version: {VERSION}")
        logger.info(f"yt-dlp version: {yt_dlp.version.__version__}")
        logger.info(f"🍪 Credentials: {'configured' if auth else 'NOT configured (bot detection risk)'}")
        if auth is not None:
            logger.info(f"🎫 PO token: {'configured' if auth.has_tokens else 'not set'}")
        logger.info(f"🔁 Relay instances: {len(settings.relay_instances)}")
        logger.info(
            f"🧰 Subprocess extractor: "
            f"{'enabled' if settings.subprocess_extractor_enabled() else 'disabled'}"
        )
        yield
        logger.info("Shutting down tubegate...")

    app = FastAPI(
        title="tubegate",
        description="Self-hosted YouTube streaming gateway",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.auth = auth
    app.state.resolver = resolver
    app.state.metadata = metadata
    app.state.search = search_service
    app.state.images = image_relay
    app.state.started_at = time.time()
    app.state.stats = {
        "streams_served": 0,
        "active_streams": 0,
        "failed_streams": 0,
    }

    _register_routes(app)
    _register_error_handlers(app)
    return app


# ============================================================================
# API ENDPOINTS
# ============================================================================


def _register_routes(app: FastAPI) -> None:

    @app.get("/resolve-info")
    @app.get("/api/info", include_in_schema=False)
    async def resolve_info(
        request: Request,
        video_id: Optional[str] = Query(None, alias="videoId"),
    ):
        """
        Watch-page metadata for one video

        **Fallback:** yt-dlp (with credentials) → yt-dlp → search for the id
        """
        video_id = validate_video_id(video_id)
        logger.info(f"ℹ️ Info request: {video_id}")
        info = await request.app.state.metadata.resolve_info(video_id)
        return JSONResponse(content=info.model_dump(mode="json", by_alias=True))

    @app.get("/resolve-stream")
    @app.get("/api/stream", include_in_schema=False)
    async def resolve_stream(
        request: Request,
        video_id: Optional[str] = Query(None, alias="videoId"),
        media_type: Optional[str] = Query(None, alias="type"),
    ):
        """
        Stream video or audio bytes through the gateway

        **Flow:**
        1. Validate the id (400 before any upstream call)
        2. Resolve a source: credentials → client profiles → relay instances → subprocess
        3. Relay the bytes; a client disconnect tears the upstream down
        """
        video_id = validate_video_id(video_id)
        kind = validate_media_kind(media_type)
        range_header = request.headers.get("range")
        stats = request.app.state.stats

        logger.info(f"📥 Stream request: {video_id} (type={kind.value}, range={range_header or '-'})")
        try:
            source = await request.app.state.resolver.resolve_stream(video_id, kind, range_header)
        except GatewayError:
            stats["failed_streams"] += 1
            raise

        stats["streams_served"] += 1
        stats["active_streams"] += 1

        def _finished() -> None:
            stats["active_streams"] -= 1

        return MediaStreamResponse(source, on_finish=_finished)

    @app.get("/search")
    @app.get("/api/search", include_in_schema=False)
    async def search(
        request: Request,
        q: Optional[str] = None,
        limit: Optional[str] = None,
    ):
        """Search videos; at most 50 results whatever limit is requested"""
        if not q or not q.strip():
            raise InputValidationError("Missing search query (q) parameter")
        try:
            parsed_limit = int(limit) if limit is not None else None
        except ValueError:
            parsed_limit = None

        logger.info(f"🔍 Search request: {q!r} (limit={parsed_limit})")
        result = await request.app.state.search.search(q.strip(), parsed_limit)
        return JSONResponse(content=result.model_dump(mode="json", by_alias=True))

    @app.get("/proxy-image")
    @app.get("/api/image", include_in_schema=False)
    async def proxy_image(request: Request, url: Optional[str] = None):
        """Re-serve an allow-listed thumbnail/avatar from this origin"""
        body, content_type = await request.app.state.images.fetch(url)
        return Response(
            content=body,
            media_type=content_type,
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    @app.get("/strategies")
    async def list_strategies(request: Request, media_type: Optional[str] = Query(None, alias="type")):
        """List the stream strategies in the order they are tried."""
        kind = validate_media_kind(media_type)
        names = request.app.state.resolver.list_strategies(kind)
        return {
            "total": len(names),
            "strategies": [{"num": i + 1, "name": name} for i, name in enumerate(names)],
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """
        Health check endpoint for monitoring
        """
        state = request.app.state
        return HealthResponse(
            status="healthy",
            version=VERSION,
            uptime_seconds=time.time() - state.started_at,
            yt_dlp_version=yt_dlp.version.__version__,
            auth_configured=state.auth is not None,
            relay_instances=len(state.settings.relay_instances),
            subprocess_extractor=state.settings.subprocess_extractor_enabled(),
            stats=StreamStats(**state.stats),
        )

    @app.get("/")
    async def root():
        """Root endpoint with service info"""
        return {
            "service": "tubegate",
            "version": VERSION,
            "status": "running",
            "endpoints": {
                "info": "/resolve-info?videoId=",
                "stream": "/resolve-stream?videoId=&type=video|audio",
                "search": "/search?q=&limit=",
                "image": "/proxy-image?url=",
                "strategies": "/strategies",
                "health": "/health",
            },
            "docs": "/docs",
        }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.url.path}: {exc.detail.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.detail).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception(f"💥 Unexpected error on {request.url.path}")
        error = ErrorDetail(
            code=ErrorCode.SERVER_ERROR,
            message="Internal server error. Please try again later.",
            is_transient=True,
        )
        return JSONResponse(status_code=500, content=ErrorResponse(error=error).model_dump(mode="json"))


def _build_default_app() -> FastAPI:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
