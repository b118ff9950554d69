from pathlib import Path

from config import settings
from exceptions import BadRequestError, FileTooLargeError
from utils.format_detect import ImageFormat, detect_format, ensure_supported


def validate_upload(data: bytes) -> ImageFormat:
    """Validate uploaded bytes: size limit, then magic bytes.

    Raises:
        FileTooLargeError: If file exceeds max_file_size_mb.
        UnsupportedFormatError: If magic bytes don't match any known format.
    """
    if len(data) > settings.max_file_size_bytes:
        raise FileTooLargeError(
            f"File size {len(data)} bytes exceeds limit of {settings.max_file_size_mb} MB",
            file_size=len(data),
            limit=settings.max_file_size_bytes,
        )

    return detect_format(data)


def resolve_source_path(path: str, source_dir: str | None = None) -> str:
    """Map a client-supplied path onto the configured source directory.

    Relative paths are joined to source_dir; absolute paths must already
    live under it. Symlinks and '..' are resolved before the check.

    Raises:
        BadRequestError: Empty path or path escaping source_dir.
        UnsupportedFormatError: Extension not supported.
    """
    if not path or not path.strip():
        raise BadRequestError("Missing 'path'")

    root = Path(source_dir or settings.source_dir).resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    candidate = candidate.resolve()

    if not candidate.is_relative_to(root):
        raise BadRequestError("Path is outside the source directory", path=path)

    ensure_supported(str(candidate))
    return str(candidate)
