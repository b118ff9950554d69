from typing import Optional

from fastapi import APIRouter, Depends, Query

from pipeline.service import ImageOptimizer, get_image_optimizer
from schemas import CacheStats, CleanupResponse

router = APIRouter(prefix="/cache")


@router.get("/stats", response_model=CacheStats)
async def cache_stats(optimizer: ImageOptimizer = Depends(get_image_optimizer)):
    return optimizer.get_cache_stats()


@router.delete("")
async def clear_cache(optimizer: ImageOptimizer = Depends(get_image_optimizer)):
    optimizer.clear_cache()
    return {"success": True}


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    max_age_days: Optional[float] = Query(default=None, gt=0),
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    """Delete old optimized files and evict expired cache entries."""
    max_age_seconds = max_age_days * 24 * 60 * 60 if max_age_days is not None else None
    deleted = await optimizer.cleanup_old_files(max_age_seconds)
    return CleanupResponse(
        deleted_files=deleted,
        expired_cache_entries=optimizer.cache.purge_expired(),
    )
