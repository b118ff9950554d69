import shutil

from fastapi import APIRouter

from config import settings
from schemas import HealthResponse

router = APIRouter()

VERSION = "0.1.0"


def check_encoders() -> dict[str, bool]:
    """Check availability of every encoder backend."""
    results = {}
    try:
        from PIL import features

        results["pillow"] = True
        results["webp"] = bool(features.check("webp"))
    except ImportError:
        results["pillow"] = False
        results["webp"] = False
    try:
        import pillow_avif  # noqa: F401

        results["avif"] = True
    except ImportError:
        results["avif"] = False
    try:
        import oxipng  # noqa: F401

        results["oxipng"] = True
    except ImportError:
        results["oxipng"] = False
    # cjpeg only required when using the MozJPEG CLI
    if settings.jpeg_encoder == "cjpeg":
        results["cjpeg"] = shutil.which("cjpeg") is not None
    return results


@router.get("/health", response_model=HealthResponse)
async def health():
    encoders = check_encoders()
    all_available = all(encoders.values())
    return HealthResponse(
        status="ok" if all_available else "degraded",
        encoders=encoders,
        version=VERSION,
    )
