import asyncio
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from config import settings
from encoders.base import BaseEncoder
from encoders.registry import ENCODERS
from exceptions import OptimizationError, SourceNotFoundError, WhittleError
from pipeline.geometry import apply_effects, apply_resize
from pipeline.resolver import generate_output_file_name
from schemas import (
    Dimensions,
    ImageMetadata,
    OutputFormat,
    OptimizationResult,
    ResolvedOptions,
)
from utils.concurrency import with_timeout
from utils.metadata import has_alpha, inspect_image, normalize_orientation, open_image

# Modes every encoder and filter handles directly
_WORKING_MODES = ("RGB", "RGBA", "L", "LA", "P")


class Transcoder:
    """Decode -> resize -> effects -> encode, to a file or a buffer.

    Pipeline:
    1. Read source bytes (and size), decode, apply EXIF orientation
    2. Resize if width/height given (never upscales)
    3. Blur then sharpen if non-zero
    4. Encode with the format's encoder
    5. File mode: write to output_dir/<derived name>, inspect the written file
       Buffer mode: inspect the encoded bytes, no disk write

    Each transcode is bounded by `timeout_seconds`; no retries.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        encoders: dict[OutputFormat, BaseEncoder] | None = None,
    ):
        self.timeout = (
            settings.transcode_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._encoders = encoders if encoders is not None else ENCODERS

    async def transcode_file(
        self,
        source_path: str,
        options: ResolvedOptions,
        output_dir: str | Path,
        url_prefix: str = "",
    ) -> OptimizationResult:
        """Transcode a file on disk and write the result to output_dir.

        Raises:
            SourceNotFoundError: Source does not exist.
            OptimizationError: Decode, encode or write failed.
            TranscodeTimeoutError: Exceeded the time budget.
        """
        return await with_timeout(
            self._transcode_file(source_path, options, Path(output_dir), url_prefix),
            self.timeout,
            source_path,
        )

    async def transcode_buffer(
        self,
        data: bytes,
        options: ResolvedOptions,
    ) -> tuple[bytes, OptimizationResult]:
        """Transcode in memory. The result has empty path/url."""
        return await with_timeout(
            self._transcode_buffer(data, options),
            self.timeout,
            "<buffer>",
        )

    async def _transcode_file(
        self,
        source_path: str,
        options: ResolvedOptions,
        output_dir: Path,
        url_prefix: str,
    ) -> OptimizationResult:
        data = await asyncio.to_thread(self._read_source, source_path)
        encoded = await self._encode(data, options, source_path)

        file_name = generate_output_file_name(
            source_path, options.format, options.width, options.height, options.quality
        )
        output_path = output_dir / file_name
        optimized_size, metadata = await asyncio.to_thread(
            self._write_and_inspect, output_path, encoded
        )

        return self._build_result(
            original_size=len(data),
            optimized_size=optimized_size,
            options=options,
            metadata=metadata,
            path=str(output_path),
            url=f"{url_prefix.rstrip('/')}/{file_name}" if url_prefix else file_name,
        )

    async def _transcode_buffer(
        self,
        data: bytes,
        options: ResolvedOptions,
    ) -> tuple[bytes, OptimizationResult]:
        encoded = await self._encode(data, options, "<buffer>")
        metadata = await asyncio.to_thread(inspect_image, encoded)
        result = self._build_result(
            original_size=len(data),
            optimized_size=len(encoded),
            options=options,
            metadata=metadata,
        )
        return encoded, result

    async def _encode(self, data: bytes, options: ResolvedOptions, label: str) -> bytes:
        img = await asyncio.to_thread(self._prepare, data, options, label)
        encoder = self._encoders[OutputFormat(options.format)]
        try:
            return await encoder.encode(img, options)
        except WhittleError:
            raise
        except (OSError, ValueError, KeyError) as e:
            raise OptimizationError(
                f"Failed to encode {label} as {options.format.value}: {e}",
                source=label,
                format=options.format.value,
            ) from e

    @staticmethod
    def _read_source(source_path: str) -> bytes:
        try:
            with open(source_path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise SourceNotFoundError(
                f"Source image not found: {source_path}", source=source_path
            ) from e
        except OSError as e:
            raise OptimizationError(
                f"Cannot read {source_path}: {e.strerror or e}", source=source_path
            ) from e

    @staticmethod
    def _prepare(data: bytes, options: ResolvedOptions, label: str) -> Image.Image:
        """Decode and apply geometry + effects (runs in a worker thread)."""
        try:
            img = open_image(data)
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise OptimizationError(f"Cannot decode image {label}: {e}", source=label) from e

        img = normalize_orientation(img)
        if img.mode not in _WORKING_MODES:
            info = img.info
            img = img.convert("RGBA" if has_alpha(img) else "RGB")
            img.info = info

        img = apply_resize(img, options)
        return apply_effects(img, options.blur, options.sharpen)

    @staticmethod
    def _write_and_inspect(output_path: Path, encoded: bytes) -> tuple[int, ImageMetadata]:
        """Write the output, then describe the file as it landed on disk."""
        try:
            os.makedirs(output_path.parent, exist_ok=True)
            output_path.write_bytes(encoded)
            written = output_path.read_bytes()
        except OSError as e:
            raise OptimizationError(
                f"Cannot write {output_path}: {e.strerror or e}", output=str(output_path)
            ) from e
        return len(written), inspect_image(written)

    @staticmethod
    def _build_result(
        original_size: int,
        optimized_size: int,
        options: ResolvedOptions,
        metadata: ImageMetadata,
        path: str = "",
        url: str = "",
    ) -> OptimizationResult:
        ratio = (original_size - optimized_size) / original_size if original_size else 0.0
        return OptimizationResult(
            original_size=original_size,
            optimized_size=optimized_size,
            compression_ratio=ratio,
            format=options.format,
            quality=options.quality,
            dimensions=Dimensions(width=metadata.width, height=metadata.height),
            path=path,
            url=url,
            metadata=metadata,
        )
