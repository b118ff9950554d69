import os
from typing import Callable, Optional

from config import settings
from schemas import (
    CompressionHint,
    FitMode,
    OptimizationOptions,
    OutputFormat,
    Position,
    ResolvedOptions,
)
from utils.format_detect import detect_best_format

FormatStrategy = Callable[[Optional[str]], OutputFormat]


def resolve_options(
    options: OptimizationOptions | dict | None,
    source_path: str | None = None,
    detect: FormatStrategy = detect_best_format,
) -> ResolvedOptions:
    """Fill every unset option with its default.

    Format falls back to `detect(source_path)`; buffers (no path) get
    whatever the strategy returns for None, WebP by default.
    """
    if options is None:
        options = OptimizationOptions()
    elif isinstance(options, dict):
        options = OptimizationOptions(**options)

    return ResolvedOptions(
        quality=options.quality if options.quality is not None else settings.default_quality,
        format=options.format or detect(source_path),
        width=options.width,
        height=options.height,
        fit=options.fit or FitMode.INSIDE,
        position=options.position or Position.CENTER,
        blur=options.blur or 0,
        sharpen=options.sharpen or 0,
        progressive=True if options.progressive is None else options.progressive,
        strip=True if options.strip is None else options.strip,
        compression=options.compression or CompressionHint.MOZJPEG,
    )


def generate_output_file_name(
    source_path: str,
    fmt: OutputFormat | str,
    width: int | None = None,
    height: int | None = None,
    quality: int | None = None,
) -> str:
    """Derive the output file name for a transcode.

    photo.jpg, webp, 100x200, q85 -> photo-100x200-q85.webp
    A missing side is written as "auto". Identical names overwrite
    each other on disk.
    """
    base_name = os.path.splitext(os.path.basename(source_path))[0]
    size_suffix = f"-{width or 'auto'}x{height or 'auto'}" if width or height else ""
    quality_suffix = f"-q{quality}" if quality else ""
    return f"{base_name}{size_suffix}{quality_suffix}.{OutputFormat(fmt).value}"
