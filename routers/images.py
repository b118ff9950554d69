from fastapi import APIRouter, Depends

from exceptions import WhittleError
from pipeline.service import ImageOptimizer, get_image_optimizer
from schemas import (
    BatchItemError,
    BatchReport,
    BatchRequest,
    ImageRequest,
    OptimizationResult,
    PlaceholderRequest,
    PlaceholderResult,
    ResponsiveRequest,
)
from security.file_validation import resolve_source_path

router = APIRouter(prefix="/images")


@router.post("/optimize", response_model=OptimizationResult)
async def optimize_file(
    body: ImageRequest,
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    """Optimize a file under the source directory into the output directory."""
    path = resolve_source_path(body.path)
    return await optimizer.optimize_image(path, body.options)


@router.post("/batch", response_model=BatchReport)
async def optimize_batch(
    body: BatchRequest,
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    """Optimize many files; failures are reported per item, never as a 4xx/5xx."""
    errors: list[BatchItemError] = []
    paths: list[str] = []
    for raw in body.paths:
        try:
            paths.append(resolve_source_path(raw))
        except WhittleError as exc:
            errors.append(_item_error(raw, exc))

    outcome = await optimizer.optimize_images_report(paths, body.options)
    errors.extend(
        BatchItemError(source=e.source, error=e.error_code, message=e.message)
        for e in outcome.errors
    )

    return BatchReport(
        results=outcome.results,
        requested=len(body.paths),
        succeeded=len(outcome.results),
        failed=len(errors),
        errors=errors,
    )


@router.post("/responsive", response_model=list[OptimizationResult])
async def responsive_variants(
    body: ResponsiveRequest,
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    path = resolve_source_path(body.path)
    return await optimizer.create_responsive_images(path, body.sizes, body.options)


@router.post("/placeholder", response_model=PlaceholderResult)
async def placeholder(
    body: PlaceholderRequest,
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    path = resolve_source_path(body.path)
    return await optimizer.generate_placeholder(path, body.options)


def _item_error(source: str, exc: WhittleError) -> BatchItemError:
    return BatchItemError(
        source=source,
        error=exc.error_code,
        message=exc.message,
    )
