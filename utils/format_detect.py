import os
import struct
from enum import Enum

from exceptions import UnsupportedFormatError
from schemas import OutputFormat


class ImageFormat(str, Enum):
    """Source formats accepted by the service."""

    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"
    GIF = "gif"
    SVG = "svg"
    AVIF = "avif"


# File extension (without dot) -> source format
SUPPORTED_EXTENSIONS = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "webp": ImageFormat.WEBP,
    "avif": ImageFormat.AVIF,
    "gif": ImageFormat.GIF,
    "svg": ImageFormat.SVG,
}

# MIME type mapping
MIME_TYPES = {
    ImageFormat.PNG: "image/png",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.GIF: "image/gif",
    ImageFormat.SVG: "image/svg+xml",
    ImageFormat.AVIF: "image/avif",
}

OUTPUT_MIME_TYPES = {
    OutputFormat.WEBP: "image/webp",
    OutputFormat.AVIF: "image/avif",
    OutputFormat.JPEG: "image/jpeg",
    OutputFormat.PNG: "image/png",
}


def source_extension(path: str) -> str:
    """Lower-case extension without the leading dot ('' if none)."""
    return os.path.splitext(path)[1].lower().lstrip(".")


def ensure_supported(path: str) -> ImageFormat:
    """Check the source extension against the supported set.

    Runs before any I/O so unsupported inputs fail fast.

    Raises:
        UnsupportedFormatError: If the extension is not supported.
    """
    ext = source_extension(path)
    fmt = SUPPORTED_EXTENSIONS.get(ext)
    if fmt is None:
        raise UnsupportedFormatError(
            f"Unsupported image format: .{ext}" if ext else "Unsupported image format: no extension",
            source=path,
            extension=ext,
        )
    return fmt


def detect_best_format(path: str | None) -> OutputFormat:
    """Pick the output format for a source when the caller did not.

    Modern formats are kept as-is; everything else goes to WebP.
    Extension-based only; swap in a content-sniffing strategy through
    ImageOptimizer(format_strategy=...) if needed.
    """
    if path:
        ext = source_extension(path)
        if ext == "webp":
            return OutputFormat.WEBP
        if ext == "avif":
            return OutputFormat.AVIF
    return OutputFormat.WEBP


def detect_format(data: bytes) -> ImageFormat:
    """Detect image format from magic bytes.

    Used for uploaded buffers, where no trustworthy file name exists.

    Args:
        data: Raw image bytes (at least first 32 bytes needed).

    Returns:
        ImageFormat enum value.

    Raises:
        UnsupportedFormatError: If no known format matches.
    """
    if len(data) < 4:
        raise UnsupportedFormatError("File too small to identify format")

    # PNG: \x89PNG\r\n\x1a\n
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return ImageFormat.PNG

    # JPEG: \xFF\xD8\xFF
    if data[:3] == b"\xff\xd8\xff":
        return ImageFormat.JPEG

    # GIF: GIF87a or GIF89a
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageFormat.GIF

    # WebP: RIFF....WEBP
    if data[:4] == b"RIFF" and len(data) >= 12 and data[8:12] == b"WEBP":
        return ImageFormat.WEBP

    # AVIF: ISO BMFF ftyp box
    if len(data) >= 12 and data[4:8] == b"ftyp" and _is_avif_ftyp(data):
        return ImageFormat.AVIF

    if _is_svg_content(data):
        return ImageFormat.SVG

    raise UnsupportedFormatError(
        "Unrecognized file format",
        detected_bytes=data[:16].hex(),
    )


def _is_avif_ftyp(data: bytes) -> bool:
    """Check the ftyp major brand and compatible brands for avif/avis."""
    if data[8:12] in (b"avif", b"avis"):
        return True

    box_size = struct.unpack(">I", data[:4])[0]
    box_end = min(box_size, len(data))
    offset = 16  # Skip size + ftyp + major_brand + minor_version

    while offset + 4 <= box_end:
        if data[offset : offset + 4] in (b"avif", b"avis"):
            return True
        offset += 4

    return False


def _is_svg_content(data: bytes) -> bool:
    """Strip BOM and leading whitespace, then check for <?xml or <svg."""
    text = data
    if text[:3] == b"\xef\xbb\xbf":
        text = text[3:]

    lower = text.lstrip()[:256].lower()
    return lower.startswith(b"<?xml") or lower.startswith(b"<svg")
