from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from exceptions import WhittleError
from middleware import RequestGuardMiddleware, error_response
from pipeline.service import get_image_optimizer
from routers import cache, health, images, optimize
from utils.logging import get_logger, setup_logging

# Stat headers set on /optimize responses, readable from browsers
EXPOSED_HEADERS = [
    "X-Original-Size",
    "X-Optimized-Size",
    "X-Compression-Ratio",
    "X-Output-Format",
    "X-Image-Width",
    "X-Image-Height",
    "X-Request-ID",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, output directory, encoder availability."""
    setup_logging()
    logger = get_logger("main")

    optimizer = get_image_optimizer()
    optimizer.ensure_output_dir()
    logger.info(
        f"Writing optimized images to {optimizer.output_dir}",
        extra={"context": {"source_dir": settings.source_dir, "ttl": optimizer.cache.ttl}},
    )

    encoders = health.check_encoders()
    missing = [name for name, available in encoders.items() if not available]
    if missing:
        logger.warning(
            f"Missing encoders: {missing}",
            extra={"context": {"missing_encoders": missing}},
        )

    yield

    logger.info(
        "Whittle shutting down",
        extra={"context": optimizer.get_cache_stats().model_dump()},
    )


app = FastAPI(
    title="Whittle",
    description="Image optimization: resize, re-encode and cache web images",
    version=health.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.allowed_origins.split(",")],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=EXPOSED_HEADERS,
)
app.add_middleware(RequestGuardMiddleware)


@app.exception_handler(WhittleError)
async def whittle_error_handler(request: Request, exc: WhittleError):
    return error_response(exc)


app.include_router(health.router)
app.include_router(optimize.router)
app.include_router(images.router)
app.include_router(cache.router)
