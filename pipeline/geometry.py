"""Resize geometry and pixel effects.

All fit modes share one rule: the output is never larger than the
source in either dimension.
"""

from PIL import Image, ImageFilter, ImageOps

from schemas import FitMode, Position, ResolvedOptions
from utils.metadata import has_alpha

# Position -> Pillow centering (x, y), 0 = left/top, 1 = right/bottom
CENTERING = {
    Position.CENTER: (0.5, 0.5),
    Position.TOP: (0.5, 0.0),
    Position.RIGHT_TOP: (1.0, 0.0),
    Position.RIGHT: (1.0, 0.5),
    Position.RIGHT_BOTTOM: (1.0, 1.0),
    Position.BOTTOM: (0.5, 1.0),
    Position.LEFT_BOTTOM: (0.0, 1.0),
    Position.LEFT: (0.0, 0.5),
    Position.LEFT_TOP: (0.0, 0.0),
}

RESAMPLE = Image.Resampling.LANCZOS


def _scaled(value: int, scale: float) -> int:
    return max(1, round(value * scale))


def target_size(
    src_width: int,
    src_height: int,
    width: int | None,
    height: int | None,
    fit: FitMode = FitMode.INSIDE,
) -> tuple[int, int]:
    """Compute the output canvas size for a resize request.

    One side only: the other side follows the source aspect ratio.
    Both sides: depends on `fit`. No request: source size.
    """
    if not width and not height:
        return src_width, src_height

    if width and not height:
        scale = min(width / src_width, 1.0)
        return _scaled(src_width, scale), _scaled(src_height, scale)

    if height and not width:
        scale = min(height / src_height, 1.0)
        return _scaled(src_width, scale), _scaled(src_height, scale)

    fit = FitMode(fit)
    if fit == FitMode.INSIDE:
        scale = min(width / src_width, height / src_height, 1.0)
        return _scaled(src_width, scale), _scaled(src_height, scale)

    if fit == FitMode.OUTSIDE:
        scale = min(max(width / src_width, height / src_height), 1.0)
        return _scaled(src_width, scale), _scaled(src_height, scale)

    # cover, contain, fill: the box itself, clamped to the source
    return min(width, src_width), min(height, src_height)


def apply_resize(img: Image.Image, options: ResolvedOptions) -> Image.Image:
    """Resize according to width/height/fit/position (LANCZOS)."""
    if not options.width and not options.height:
        return img

    size = target_size(img.width, img.height, options.width, options.height, options.fit)
    if size == img.size:
        return img

    both_sides = bool(options.width and options.height)
    centering = CENTERING[Position(options.position)]

    if both_sides and options.fit == FitMode.COVER:
        resized = ImageOps.fit(img, size, method=RESAMPLE, centering=centering)
    elif both_sides and options.fit == FitMode.CONTAIN:
        resized = _pad(img, size, centering)
    else:
        resized = img.resize(size, RESAMPLE)

    resized.info = img.info
    return resized


def _pad(img: Image.Image, size: tuple[int, int], centering: tuple[float, float]) -> Image.Image:
    """Letterbox into `size`: transparent for alpha images, black otherwise."""
    if has_alpha(img):
        src, color = img.convert("RGBA"), (0, 0, 0, 0)
    else:
        src, color = img.convert("RGB"), (0, 0, 0)
    return ImageOps.pad(src, size, method=RESAMPLE, color=color, centering=centering)


def apply_effects(img: Image.Image, blur: float = 0, sharpen: float = 0) -> Image.Image:
    """Gaussian blur, then unsharp mask. Zero disables each step."""
    if not blur and not sharpen:
        return img

    info = img.info
    if img.mode not in ("L", "RGB", "RGBA"):
        # Filters need real channels, not palette indices
        img = img.convert("RGBA" if has_alpha(img) else "RGB")

    if blur > 0:
        img = img.filter(ImageFilter.GaussianBlur(radius=blur))
    if sharpen > 0:
        img = img.filter(ImageFilter.UnsharpMask(radius=sharpen, percent=150, threshold=3))

    img.info = info
    return img
