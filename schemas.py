from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OutputFormat(str, Enum):
    WEBP = "webp"
    AVIF = "avif"
    JPEG = "jpeg"
    PNG = "png"


class FitMode(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"


class Position(str, Enum):
    CENTER = "center"
    TOP = "top"
    RIGHT_TOP = "right top"
    RIGHT = "right"
    RIGHT_BOTTOM = "right bottom"
    BOTTOM = "bottom"
    LEFT_BOTTOM = "left bottom"
    LEFT = "left"
    LEFT_TOP = "left top"


class CompressionHint(str, Enum):
    MOZJPEG = "mozjpeg"
    JPEG = "jpeg"
    WEBP = "webp"
    AVIF = "avif"


class OptimizationOptions(BaseModel):
    """Caller-supplied optimization parameters (all optional).

    Quality outside 1-100 and non-positive dimensions are rejected,
    not clamped.
    """

    quality: Optional[int] = Field(default=None, ge=1, le=100)
    format: Optional[OutputFormat] = None
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    fit: Optional[FitMode] = None
    position: Optional[Position] = None
    blur: Optional[float] = Field(default=None, ge=0)
    sharpen: Optional[float] = Field(default=None, ge=0)
    progressive: Optional[bool] = None
    strip: Optional[bool] = None
    compression: Optional[CompressionHint] = None


class ResolvedOptions(BaseModel):
    """Fully specified options, produced by pipeline.resolver."""

    quality: int = Field(ge=1, le=100)
    format: OutputFormat
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    fit: FitMode = FitMode.INSIDE
    position: Position = Position.CENTER
    blur: float = Field(default=0, ge=0)
    sharpen: float = Field(default=0, ge=0)
    progressive: bool = True
    strip: bool = True
    compression: CompressionHint = CompressionHint.MOZJPEG


class Dimensions(BaseModel):
    width: int
    height: int


class ImageMetadata(BaseModel):
    """Encoder-side inspection of the written output."""

    format: str
    width: int
    height: int
    channels: int
    depth: str
    density: float = 0
    has_profile: bool = False
    has_alpha: bool = False


class OptimizationResult(BaseModel):
    """Returned to callers and stored as the cache value."""

    original_size: int
    optimized_size: int
    compression_ratio: float
    format: OutputFormat
    quality: int
    dimensions: Dimensions
    path: str = ""
    url: str = ""
    metadata: ImageMetadata


class CacheStats(BaseModel):
    size: int
    hit_rate: float
    total_hits: int
    total_misses: int


class PlaceholderOptions(BaseModel):
    width: int = Field(default=20, gt=0)
    height: int = Field(default=20, gt=0)
    blur: float = Field(default=10, ge=0)
    quality: int = Field(default=30, ge=1, le=100)


class PlaceholderResult(BaseModel):
    placeholder: str
    dominant_color: str


class ResponsiveSize(BaseModel):
    width: int = Field(gt=0)
    height: Optional[int] = Field(default=None, gt=0)


# --- HTTP request/response bodies ---


class ImageRequest(BaseModel):
    """JSON body for path-based single-image operations."""

    path: str
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)


class BatchRequest(BaseModel):
    paths: list[str] = Field(min_length=1)
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)


class ResponsiveRequest(BaseModel):
    path: str
    sizes: Optional[list[ResponsiveSize]] = Field(
        default=None,
        description="Requested variants. Omit to use the default sm/md/lg/xl breakpoints.",
    )
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)


class PlaceholderRequest(BaseModel):
    path: str
    options: PlaceholderOptions = Field(default_factory=PlaceholderOptions)


class BatchItemError(BaseModel):
    source: str
    error: str
    message: str


class BatchReport(BaseModel):
    """Batch response: successes plus the per-item failure log."""

    results: list[OptimizationResult]
    requested: int
    succeeded: int
    failed: int
    errors: list[BatchItemError] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    deleted_files: int
    expired_cache_entries: int


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    encoders: dict
    version: str
