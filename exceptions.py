class WhittleError(Exception):
    """Base exception for all Whittle errors."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, **kwargs):
        self.message = message
        self.details = kwargs
        super().__init__(message)


class BadRequestError(WhittleError):
    """Malformed request body, invalid options, path outside the source dir."""

    status_code = 400
    error_code = "bad_request"


class AuthenticationError(WhittleError):
    """Invalid or missing API key."""

    status_code = 401
    error_code = "unauthorized"


class SourceNotFoundError(WhittleError):
    """Source image does not exist."""

    status_code = 404
    error_code = "source_not_found"


class FileTooLargeError(WhittleError):
    """Upload exceeds maximum allowed size."""

    status_code = 413
    error_code = "file_too_large"


class UnsupportedFormatError(WhittleError):
    """Source extension or magic bytes not in the supported set."""

    status_code = 415
    error_code = "unsupported_format"


class OptimizationError(WhittleError):
    """Decode, encode or write failed."""

    status_code = 422
    error_code = "optimization_failed"


class ToolError(WhittleError):
    """External encoder CLI exited with an error."""

    status_code = 500
    error_code = "tool_failed"


class TranscodeTimeoutError(WhittleError):
    """Transcode exceeded its time budget."""

    status_code = 504
    error_code = "transcode_timeout"
