import asyncio

from PIL import Image

from encoders.base import BaseEncoder
from schemas import OutputFormat, ResolvedOptions

# Pillow "method" is libwebp's effort knob: 0=fast, 6=slowest/smallest
WEBP_EFFORT = 6


class WebpEncoder(BaseEncoder):
    """Lossy WebP via Pillow/libwebp.

    Settings: quality, effort 6, near-lossless off. libwebp's sharp-YUV
    ("smart subsample") conversion is not exposed by Pillow, so the
    default RGB->YUV conversion applies.
    """

    format = OutputFormat.WEBP

    async def encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        return await asyncio.to_thread(self._encode, img, options)

    def _encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        img = self._to_rgb_or_rgba(img)
        return self._save(
            img,
            options,
            format="WEBP",
            quality=options.quality,
            method=WEBP_EFFORT,
            lossless=False,
        )
