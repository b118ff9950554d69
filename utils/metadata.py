import io

from PIL import Image, ImageOps

from exceptions import FileTooLargeError
from schemas import ImageMetadata

# Pillow mode -> libvips band format name
_DEPTH_BY_MODE = {
    "I;16": "ushort",
    "I;16L": "ushort",
    "I;16B": "ushort",
    "I;16N": "ushort",
    "I": "int",
    "F": "float",
}

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")


def open_image(source: bytes | str) -> Image.Image:
    """Decode an image from bytes or a path, fully loaded.

    Registers the AVIF plugin first so AVIF sources decode on Pillow
    builds without native AVIF support.

    Raises:
        FileTooLargeError: Pixel count above Pillow's MAX_IMAGE_PIXELS guard.
    """
    import pillow_avif  # noqa: F401, registers the AVIF plugin

    fp = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        img = Image.open(fp)
        img.load()
    except Image.DecompressionBombError as e:
        raise FileTooLargeError(
            f"Image has too many pixels to decode safely: {e}",
            limit_pixels=Image.MAX_IMAGE_PIXELS,
        ) from e
    return img


def normalize_orientation(img: Image.Image) -> Image.Image:
    """Bake the EXIF orientation into the pixels.

    Stripped outputs lose the Orientation tag, so the rotation has to be
    applied before encoding or browsers show the image sideways.
    """
    fmt = img.format
    transposed = ImageOps.exif_transpose(img)
    if transposed is None:
        return img
    transposed.format = fmt
    return transposed


def has_alpha(img: Image.Image) -> bool:
    return img.mode in _ALPHA_MODES or "transparency" in img.info


def preserved_metadata(img: Image.Image, strip: bool) -> dict:
    """Save kwargs carrying metadata over to the output.

    strip=True drops everything (EXIF, ICC, XMP, comments). Otherwise the
    ICC profile and EXIF block are forwarded to the encoder.
    """
    if strip:
        return {}

    kwargs = {}
    icc_profile = img.info.get("icc_profile")
    if icc_profile:
        kwargs["icc_profile"] = icc_profile
    exif_bytes = img.info.get("exif")
    if exif_bytes:
        kwargs["exif"] = exif_bytes
    return kwargs


def inspect_image(data: bytes) -> ImageMetadata:
    """Read format, geometry and color info from encoded bytes."""
    img = open_image(data)

    if img.mode == "P":
        channels = 4 if "transparency" in img.info else 3
    else:
        channels = len(img.getbands())

    dpi = img.info.get("dpi")
    density = float(dpi[0]) if dpi else 0.0

    return ImageMetadata(
        format=(img.format or "").lower(),
        width=img.width,
        height=img.height,
        channels=channels,
        depth=_DEPTH_BY_MODE.get(img.mode, "uchar"),
        density=density,
        has_profile=bool(img.info.get("icc_profile")),
        has_alpha=has_alpha(img),
    )
