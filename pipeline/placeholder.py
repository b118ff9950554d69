import base64
import io

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from exceptions import OptimizationError, SourceNotFoundError
from schemas import PlaceholderOptions, PlaceholderResult
from utils.metadata import normalize_orientation, open_image


def generate_placeholder(
    source_path: str,
    options: PlaceholderOptions | None = None,
) -> PlaceholderResult:
    """Tiny blurred WebP preview plus a dominant color swatch.

    The preview is cover-fitted to width x height, blurred, encoded at low
    quality and returned as a data URI. The dominant color is the source
    averaged down to a single pixel.

    Blocking; callers on the event loop should use asyncio.to_thread.
    """
    options = options or PlaceholderOptions()

    try:
        img = open_image(source_path)
    except FileNotFoundError as e:
        raise SourceNotFoundError(
            f"Source image not found: {source_path}", source=source_path
        ) from e
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise OptimizationError(
            f"Cannot decode image {source_path}: {e}", source=source_path
        ) from e

    img = normalize_orientation(img)
    rgb = img.convert("RGBA" if img.mode in ("RGBA", "LA", "PA", "P") else "RGB")

    preview = ImageOps.fit(rgb, (options.width, options.height), method=Image.Resampling.LANCZOS)
    if options.blur > 0:
        preview = preview.filter(ImageFilter.GaussianBlur(radius=options.blur))

    buf = io.BytesIO()
    preview.save(buf, format="WEBP", quality=options.quality)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")

    return PlaceholderResult(
        placeholder=f"data:image/webp;base64,{encoded}",
        dominant_color=dominant_color(rgb),
    )


def dominant_color(img: Image.Image) -> str:
    """Average color as #rrggbb, via a 1x1 box downsample."""
    pixel = img.convert("RGB").resize((1, 1), Image.Resampling.BOX).getpixel((0, 0))
    r, g, b = pixel[:3]
    return f"#{r:02x}{g:02x}{b:02x}"
