"""
Channel Family Rater - Backend API
Copyright (c) 2026 beautifulplanet
Licensed under MIT License

FastAPI server that rates a YouTube channel's recent videos for family
suitability and returns an age band with a short justification.

Data provided by YouTube Data API
https://developers.google.com/youtube
"""

import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

import time
import secrets
from contextlib import asynccontextmanager
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
import uvicorn

from analytics import AnalyticsRecorder, LoggingAnalyticsRecorder, build_record, safe_record
from analyzer import ChannelAnalyzer
from classifier import ContentClassifier
from config import Settings
from errors import AnalysisError, MissingQueryError, ServerMisconfigError
from youtube_data import YouTubeDataFetcher

VERSION = "1.0.0"
MAX_QUERY_LENGTH = 500

settings = Settings.from_env()

# Initialize components (once per process, injected into the pipeline)
youtube_fetcher: Optional[YouTubeDataFetcher] = None
channel_analyzer: Optional[ChannelAnalyzer] = None
content_classifier: Optional[ContentClassifier] = None
analytics_recorder: AnalyticsRecorder = LoggingAnalyticsRecorder()

_missing_credentials = settings.missing_credentials()
if not _missing_credentials:
    youtube_fetcher = YouTubeDataFetcher(api_key=settings.youtube_api_key)
    content_classifier = ContentClassifier(
        openai_api_key=settings.openai_api_key,
        anthropic_api_key=settings.anthropic_api_key,
        provider=settings.ai_provider,
        model=settings.ai_model,
    )
    channel_analyzer = ChannelAnalyzer(
        youtube_fetcher,
        content_classifier,
        video_count=settings.recent_video_count,
        batch_size=settings.video_batch_size,
        timeout_seconds=settings.analysis_timeout_seconds,
    )

# Startup validation - log feature availability
_features = {
    "channel_analysis": channel_analyzer is not None,
    "ai_classification": bool(content_classifier and content_classifier.is_ai_enabled),
    "ai_provider": content_classifier.provider if content_classifier else "none",
    "ai_model": content_classifier.model if content_classifier else "none",
    "recent_videos": str(settings.recent_video_count),
    "timeout_seconds": f"{settings.analysis_timeout_seconds:g}",
}
logger.info("=== Feature Availability ===")
for feature, enabled in _features.items():
    if isinstance(enabled, str):
        logger.info(f"  {feature}: {enabled}")
    else:
        status = "ENABLED" if enabled else "DISABLED"
        logger.info(f"  {feature}: {status}")
if _missing_credentials:
    logger.warning(f"Missing credentials: {', '.join(_missing_credentials)}. /analyze will report SERVER_MISCONFIG.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if youtube_fetcher is not None:
        await youtube_fetcher.close()


app = FastAPI(
    title="Channel Family Rater API",
    description="Rates YouTube channels for family suitability from their recent videos",
    version=VERSION,
    lifespan=lifespan,
)

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Attach security headers (X-Content-Type-Options, X-Frame-Options, etc.)."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
    return response

# API Key Authentication middleware (optional - set API_SECRET_KEY in .env to enable)
_api_secret = settings.api_secret_key
# Endpoints that don't require authentication
_PUBLIC_ENDPOINTS = {"/health", "/docs", "/openapi.json", "/redoc"}

if _api_secret:
    logger.info("API authentication: ENABLED (API_SECRET_KEY set)")
else:
    logger.warning("API authentication: DISABLED. Set API_SECRET_KEY in .env to require auth.")

@app.middleware("http")
async def api_key_middleware(request: Request, call_next):
    """Require X-API-Key header on protected endpoints when API_SECRET_KEY is configured."""
    if not _api_secret:
        return await call_next(request)

    path = request.url.path.rstrip("/")
    if path in _PUBLIC_ENDPOINTS or request.method == "OPTIONS":
        return await call_next(request)

    provided_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(provided_key, _api_secret):
        return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key"})

    return await call_next(request)

# Per-IP rate limiting middleware
_rate_limit_store: dict[str, list[float]] = {}
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMITS = {
    "/analyze": 10,      # 10 requests per minute
    "/health": 60,       # 60 requests per minute
}
DEFAULT_RATE_LIMIT = 30  # For unlisted endpoints

@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Enforce per-IP, per-endpoint rate limits using a sliding window."""
    client_ip = request.client.host if request.client else "unknown"
    path = request.url.path.rstrip("/")
    limit = RATE_LIMITS.get(path, DEFAULT_RATE_LIMIT)
    key = f"{client_ip}:{path}"

    now = time.time()
    timestamps = _rate_limit_store.get(key, [])
    # Remove old timestamps outside the window
    timestamps = [t for t in timestamps if now - t < RATE_LIMIT_WINDOW]

    if len(timestamps) >= limit:
        return JSONResponse(
            status_code=429,
            content={"detail": f"Rate limit exceeded. Max {limit} requests per minute for {path}."}
        )

    timestamps.append(now)
    _rate_limit_store[key] = timestamps

    # Periodic cleanup of old entries (every ~200 requests)
    if len(_rate_limit_store) > 200:
        cutoff = now - RATE_LIMIT_WINDOW
        stale_keys = [
            k for k, v in _rate_limit_store.items()
            if not v or v[-1] < cutoff
        ]
        for k in stale_keys:
            del _rate_limit_store[k]

    return await call_next(request)

# CORS for the web frontend
# Security: Only allow configured origins (set ALLOWED_ORIGINS in .env)
if settings.allowed_origins:
    ALLOWED_ORIGINS = settings.allowed_origins
    logger.info(f"CORS: Locked to {len(ALLOWED_ORIGINS)} origin(s)")
else:
    ALLOWED_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
    logger.warning("CORS: No ALLOWED_ORIGINS set - allowing local frontend only (dev mode).")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-API-Key"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as MISSING_QUERY, like an empty query."""
    return JSONResponse(status_code=400, content={"error": MissingQueryError.code, "detail": "Request body must be {\"q\": string}"})


# Request/Response models
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(BaseModel):
    q: Optional[str] = None


class ChannelOut(CamelModel):
    id: str
    title: str = ""
    handle: Optional[str] = None
    thumbnail: Optional[str] = None


class EngagementOut(CamelModel):
    like_to_view_ratio: float
    comment_to_view_ratio: float
    engagement_velocity: float
    controversy_score: float
    audience_engagement: str


class CommentAnalysisOut(CamelModel):
    total_comments: int
    avg_sentiment: float
    community_flags: list[str] = []


class VideoOut(CamelModel):
    video_id: str
    url: str
    title: str
    published_at: str
    view_count: int
    like_count: int
    comment_count: int
    category_scores: dict[str, float]
    risk_notes: list[str]
    is_educational: bool
    classification_source: str
    transcript_available: bool
    engagement_metrics: EngagementOut
    comment_analysis: Optional[CommentAnalysisOut] = None


class AggregateOut(CamelModel):
    scores: dict[str, float]
    age_band: str
    verdict: str
    bullets: list[str]


class TranscriptCoverageOut(CamelModel):
    available: int
    total: int
    percentage: int
    sufficient: bool


class AnalysisResponse(CamelModel):
    query: str
    channel: ChannelOut
    videos: list[VideoOut]
    aggregate: AggregateOut
    warnings: Optional[list[str]] = None
    transcript_coverage: TranscriptCoverageOut


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": VERSION
    }


@app.post(
    "/analyze",
    response_model=AnalysisResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse},
               408: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze_channel(request: AnalyzeRequest, background_tasks: BackgroundTasks):
    """
    Rate a YouTube channel for family suitability.

    This endpoint:
    1. Resolves the query (handle, channel/video URL or search phrase)
    2. Fetches the channel's most recent videos
    3. Classifies each video's content (transcript, description, comments)
    4. Returns per-video scores and a channel-level age band
    """
    query = (request.q or "").strip()
    try:
        if not query:
            raise MissingQueryError()
        if len(query) > MAX_QUERY_LENGTH:
            raise MissingQueryError("query too long")
        if channel_analyzer is None:
            raise ServerMisconfigError("Required API credentials are not configured")

        report = await channel_analyzer.analyze(query)
    except AnalysisError as e:
        logger.warning(f"Analysis of '{query[:100]}' failed: {e.code} {e.detail or ''}".rstrip())
        background_tasks.add_task(safe_record, analytics_recorder,
                                  build_record(query, error_type=e.code, channel_id=e.channel_id))
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except Exception as e:
        logger.error(f"Analysis endpoint error: {e}")
        background_tasks.add_task(safe_record, analytics_recorder, build_record(query, error_type="ANALYSIS_FAILED"))
        return JSONResponse(status_code=500, content={"error": "ANALYSIS_FAILED", "detail": str(e) or type(e).__name__})

    background_tasks.add_task(safe_record, analytics_recorder, build_record(query, report=report))
    return AnalysisResponse.model_validate(report.to_dict())


if __name__ == "__main__":
    logger.info("Channel Family Rater API")
    logger.info("Starting server at http://127.0.0.1:8000")
    logger.info("API docs: http://127.0.0.1:8000/docs")
    # SECURITY: bind to localhost only - never 0.0.0.0 without authentication
    uvicorn.run(app, host="127.0.0.1", port=int(os.environ.get("PORT", "8000")))
