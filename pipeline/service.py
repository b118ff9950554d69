import asyncio
import os
import time
from pathlib import Path
from typing import Callable, Iterable

from config import Settings, settings as default_settings
from pipeline.batch import BatchOutcome, create_responsive, optimize_many
from pipeline.cache import ResultCache
from pipeline.cleanup import cleanup_old_files
from pipeline.placeholder import generate_placeholder
from pipeline.resolver import FormatStrategy, resolve_options
from pipeline.transcoder import Transcoder
from schemas import (
    CacheStats,
    OptimizationOptions,
    OptimizationResult,
    PlaceholderOptions,
    PlaceholderResult,
    ResponsiveSize,
)
from utils.concurrency import with_timeout
from utils.format_detect import detect_best_format, detect_format, ensure_supported
from utils.logging import get_logger

logger = get_logger("pipeline.service")

# sm / md / lg / xl breakpoints
DEFAULT_RESPONSIVE_SIZES = [
    ResponsiveSize(width=640),
    ResponsiveSize(width=1024),
    ResponsiveSize(width=1920),
    ResponsiveSize(width=3840),
]

Options = OptimizationOptions | dict | None


def _as_options(options: Options) -> OptimizationOptions | None:
    if isinstance(options, dict):
        return OptimizationOptions(**options)
    return options


class ImageOptimizer:
    """Resolver + cache + transcoder + batch orchestration.

    Every collaborator is injectable; the process-wide default used by the
    HTTP layer comes from get_image_optimizer().
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        cache: ResultCache | None = None,
        transcoder: Transcoder | None = None,
        format_strategy: FormatStrategy = detect_best_format,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.output_dir = Path(settings.output_dir)
        self.url_prefix = settings.public_url_prefix
        self.cache = cache if cache is not None else ResultCache(settings.cache_ttl_seconds, clock=clock)
        self.transcoder = (
            transcoder if transcoder is not None else Transcoder(settings.transcode_timeout_seconds)
        )
        self.format_strategy = format_strategy
        self._clock = clock

    def ensure_output_dir(self) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

    async def optimize_image(
        self,
        source_path: str | Path,
        options: Options = None,
    ) -> OptimizationResult:
        """Optimize one file, serving repeat requests from the cache.

        Raises:
            UnsupportedFormatError: Extension not supported (before any I/O).
            SourceNotFoundError, OptimizationError, TranscodeTimeoutError
        """
        source_path = str(source_path)
        ensure_supported(source_path)

        resolved = resolve_options(_as_options(options), source_path, self.format_strategy)
        key = self.cache.key_for(source_path, resolved.model_dump(mode="json"))

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {source_path}", extra={"context": {"source": source_path}})
            return cached

        self.ensure_output_dir()
        try:
            result = await self.transcoder.transcode_file(
                source_path, resolved, self.output_dir, self.url_prefix
            )
        except Exception:
            logger.error(
                f"Failed to optimize {source_path}",
                exc_info=True,
                extra={"context": {"source": source_path, "format": resolved.format.value}},
            )
            raise

        self.cache.set(key, result)
        logger.info(
            f"Optimized {source_path}: {result.compression_ratio * 100:.1f}% reduction",
            extra={
                "context": {
                    "source": source_path,
                    "output": result.path,
                    "format": result.format.value,
                    "original_size": result.original_size,
                    "optimized_size": result.optimized_size,
                }
            },
        )
        return result

    async def optimize_images_report(
        self,
        source_paths: Iterable[str | Path],
        options: Options = None,
    ) -> BatchOutcome:
        """Batch optimize, returning successes and the failure log."""
        return await optimize_many(
            self.optimize_image,
            [str(p) for p in source_paths],
            _as_options(options),
            concurrency=self.settings.batch_concurrency,
        )

    async def optimize_images(
        self,
        source_paths: Iterable[str | Path],
        options: Options = None,
    ) -> list[OptimizationResult]:
        """Batch optimize. Never raises for individual failures."""
        outcome = await self.optimize_images_report(source_paths, options)
        return outcome.results

    async def create_responsive_images(
        self,
        source_path: str | Path,
        sizes: Iterable[ResponsiveSize | dict] | None = None,
        options: Options = None,
    ) -> list[OptimizationResult]:
        """One output per requested size (default: sm/md/lg/xl widths)."""
        outcome = await create_responsive(
            self.optimize_image,
            str(source_path),
            DEFAULT_RESPONSIVE_SIZES if sizes is None else sizes,
            _as_options(options),
        )
        return outcome.results

    async def optimize_buffer(
        self,
        data: bytes,
        options: Options = None,
    ) -> tuple[bytes, OptimizationResult]:
        """Optimize in memory. Not cached, nothing written to disk.

        Raises:
            UnsupportedFormatError: Magic bytes not recognized.
        """
        detect_format(data)
        resolved = resolve_options(_as_options(options), None, self.format_strategy)
        try:
            return await self.transcoder.transcode_buffer(data, resolved)
        except Exception:
            logger.error(
                "Failed to optimize buffer",
                exc_info=True,
                extra={"context": {"size": len(data), "format": resolved.format.value}},
            )
            raise

    async def generate_placeholder(
        self,
        source_path: str | Path,
        options: PlaceholderOptions | dict | None = None,
    ) -> PlaceholderResult:
        source_path = str(source_path)
        ensure_supported(source_path)
        if isinstance(options, dict):
            options = PlaceholderOptions(**options)
        try:
            return await with_timeout(
                asyncio.to_thread(generate_placeholder, source_path, options),
                self.transcoder.timeout,
                source_path,
            )
        except Exception:
            logger.error(
                f"Failed to generate placeholder for {source_path}",
                exc_info=True,
                extra={"context": {"source": source_path}},
            )
            raise

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Optimization cache cleared")

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    async def cleanup_old_files(self, max_age_seconds: float | None = None) -> int:
        """Delete outputs older than max_age (default: cleanup_max_age_days).

        The directory scan runs in a worker thread.
        """
        if max_age_seconds is None:
            max_age_seconds = self.settings.cleanup_max_age_days * 24 * 60 * 60
        return await asyncio.to_thread(
            cleanup_old_files, self.output_dir, max_age_seconds, now=self._clock()
        )


_default_optimizer: ImageOptimizer | None = None


def get_image_optimizer() -> ImageOptimizer:
    """Process-wide optimizer, built on first use."""
    global _default_optimizer
    if _default_optimizer is None:
        _default_optimizer = ImageOptimizer()
    return _default_optimizer
