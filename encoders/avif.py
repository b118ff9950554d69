import asyncio

from PIL import Image

from encoders.base import BaseEncoder
from schemas import OutputFormat, ResolvedOptions

# Effort on a 0-9 scale (9 = slowest/best). libavif counts the other way:
# speed 0 = slowest, 10 = fastest.
AVIF_EFFORT = 6
AVIF_SPEED = 10 - AVIF_EFFORT


class AvifEncoder(BaseEncoder):
    """AVIF via pillow-avif-plugin (libavif, AV1).

    Settings: quality, effort 6, 4:2:0 chroma subsampling.
    """

    format = OutputFormat.AVIF

    async def encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        return await asyncio.to_thread(self._encode, img, options)

    def _encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        import pillow_avif  # noqa: F401, registers the AVIF plugin

        img = self._to_rgb_or_rgba(img)
        return self._save(
            img,
            options,
            format="AVIF",
            quality=options.quality,
            speed=AVIF_SPEED,
            subsampling="4:2:0",
        )
