import json

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError

from exceptions import BadRequestError
from pipeline.service import ImageOptimizer, get_image_optimizer
from schemas import OptimizationOptions, OptimizationResult
from security.file_validation import validate_upload
from utils.format_detect import OUTPUT_MIME_TYPES

router = APIRouter()


@router.post("/optimize")
async def optimize(
    request: Request,
    file: UploadFile = File(...),
    options: str | None = Form(None),
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    """Optimize an uploaded image in memory.

    Multipart: file field + optional options JSON string, e.g.
    {"format": "avif", "quality": 60, "width": 800}.
    Returns the optimized bytes with X-* stat headers. Nothing is cached
    or written to disk.
    """
    data = await file.read()
    opt_config = _parse_form_options(options)

    # Size limit + magic bytes (413 / 415)
    validate_upload(data)

    optimized, result = await optimizer.optimize_buffer(data, opt_config)
    return _build_binary_response(optimized, result, request)


def _parse_form_options(options_str: str | None) -> OptimizationOptions:
    """Parse the 'options' form field JSON string."""
    if not options_str:
        return OptimizationOptions()

    try:
        data = json.loads(options_str)
    except json.JSONDecodeError as e:
        raise BadRequestError(f"Invalid JSON in 'options' field: {e}")

    if not isinstance(data, dict):
        raise BadRequestError("'options' must be a JSON object")

    try:
        return OptimizationOptions(**data)
    except ValidationError as e:
        raise BadRequestError(
            "Invalid optimization options",
            errors=json.loads(e.json(include_url=False)),
        )


def _build_binary_response(
    optimized: bytes,
    result: OptimizationResult,
    request: Request,
) -> Response:
    """Build raw bytes response with X-* headers."""
    request_id = getattr(request.state, "request_id", "")

    return Response(
        content=optimized,
        media_type=OUTPUT_MIME_TYPES.get(result.format, "application/octet-stream"),
        headers={
            "Content-Length": str(result.optimized_size),
            "X-Original-Size": str(result.original_size),
            "X-Optimized-Size": str(result.optimized_size),
            "X-Compression-Ratio": f"{result.compression_ratio:.4f}",
            "X-Output-Format": result.format.value,
            "X-Image-Width": str(result.dimensions.width),
            "X-Image-Height": str(result.dimensions.height),
            "X-Request-ID": request_id,
        },
    )
