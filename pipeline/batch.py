import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from exceptions import WhittleError
from schemas import OptimizationOptions, OptimizationResult, ResponsiveSize
from utils.concurrency import chunked
from utils.logging import get_logger

logger = get_logger("pipeline.batch")

OptimizeFn = Callable[[str, Optional[OptimizationOptions]], Awaitable[OptimizationResult]]


@dataclass
class BatchError:
    source: str
    error: Exception

    @property
    def error_code(self) -> str:
        if isinstance(self.error, WhittleError):
            return self.error.error_code
        return type(self.error).__name__

    @property
    def message(self) -> str:
        if isinstance(self.error, WhittleError):
            return self.error.message
        return str(self.error)


@dataclass
class BatchOutcome:
    """Successful results (input order) plus the per-item failure log."""

    results: list[OptimizationResult] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.results) + len(self.errors)


def _record_failure(outcome: BatchOutcome, source: str, exc: Exception, label: str) -> None:
    outcome.errors.append(BatchError(source=source, error=exc))
    logger.warning(
        f"Skipping {label}: {exc}",
        extra={"context": {"source": source, "error": type(exc).__name__}},
    )


async def optimize_many(
    optimize: OptimizeFn,
    paths: Iterable[str],
    options: OptimizationOptions | None = None,
    concurrency: int = 4,
) -> BatchOutcome:
    """Run `optimize` over many paths, `concurrency` at a time.

    Paths are processed in chunks; chunk N+1 starts only after every item
    of chunk N has finished. A failing item is logged and recorded in
    `errors`; it never cancels its siblings or fails the batch.
    """
    outcome = BatchOutcome()
    paths = list(paths)

    for chunk in chunked(paths, concurrency):
        settled = await asyncio.gather(
            *(optimize(path, options) for path in chunk),
            return_exceptions=True,
        )
        for path, result in zip(chunk, settled):
            if isinstance(result, Exception):
                _record_failure(outcome, path, result, path)
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome.results.append(result)

    logger.info(
        f"Batch finished: {len(outcome.results)} succeeded, {len(outcome.errors)} failed",
        extra={
            "context": {
                "requested": len(paths),
                "succeeded": len(outcome.results),
                "failed": len(outcome.errors),
            }
        },
    )
    return outcome


async def create_responsive(
    optimize: OptimizeFn,
    path: str,
    sizes: Iterable[ResponsiveSize | dict],
    options: OptimizationOptions | None = None,
) -> BatchOutcome:
    """One sequential run per size, width/height overriding `options`.

    Same failure isolation as optimize_many.
    """
    outcome = BatchOutcome()
    base = options or OptimizationOptions()

    for size in sizes:
        if isinstance(size, dict):
            size = ResponsiveSize(**size)
        variant = base.model_copy(update={"width": size.width, "height": size.height})
        try:
            outcome.results.append(await optimize(path, variant))
        except Exception as exc:
            _record_failure(outcome, path, exc, f"{size.width}x{size.height or 'auto'} of {path}")

    return outcome
