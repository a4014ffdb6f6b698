"""
Pydantic models for request/response schemas
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MediaKind(str, Enum):
    """What the client wants to play"""
    VIDEO = "video"
    AUDIO = "audio"


class ErrorCode(str, Enum):
    """Error code classifications"""
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_IMAGE_HOST = "INVALID_IMAGE_HOST"
    VIDEO_UNAVAILABLE = "VIDEO_UNAVAILABLE"
    SIGN_IN_REQUIRED = "SIGN_IN_REQUIRED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class VideoSummary(_CamelModel):
    """A video as shown in search results, feeds and history"""
    video_id: str
    title: str
    thumbnail_url: str
    channel_id: Optional[str] = None
    channel_name: str = "Unknown"
    channel_avatar_url: Optional[str] = None
    duration_seconds: int = 0
    view_count: int = 0
    published_at: Optional[str] = None
    is_live: bool = False


class VideoInfo(VideoSummary):
    """Watch-page metadata for a single video"""
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    category: Optional[str] = None


class SearchResponse(_CamelModel):
    """Response schema for /search"""
    query: str
    total_results: int
    videos: List[VideoSummary]


class ErrorDetail(BaseModel):
    """Error details"""
    code: ErrorCode
    message: str
    is_transient: bool = Field(..., description="True if retry might succeed, False if permanent")
    retry_after_seconds: Optional[int] = None
    original_url: Optional[str] = Field(None, description="Escape hatch: the video on its original site")
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error response for failed requests"""
    success: bool = False
    error: ErrorDetail


class StreamStats(BaseModel):
    """Stream counters for health check"""
    streams_served: int
    active_streams: int
    failed_streams: int


class HealthResponse(BaseModel):
    """Response schema for /health"""
    status: str
    version: str
    uptime_seconds: float
    yt_dlp_version: str
    auth_configured: bool
    relay_instances: int
    subprocess_extractor: bool
    stats: StreamStats
