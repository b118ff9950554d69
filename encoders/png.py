import asyncio

from PIL import Image

from encoders.base import BaseEncoder
from schemas import OutputFormat, ResolvedOptions
from utils.metadata import has_alpha

# oxipng level: 0=fastest, 6=slowest. Level 2 already tries every
# filter strategy per image, which is what adaptive filtering needs.
OXIPNG_LEVEL = 2


class PngEncoder(BaseEncoder):
    """PNG: palette quantization (lossy) + zlib level 9 + oxipng.

    Quality controls the palette:
    - quality < 50:  64 colors
    - quality < 100: 256 colors
    - quality = 100: truecolor, lossless

    Pillow cannot write interlaced PNGs, so `progressive` is ignored.
    """

    format = OutputFormat.PNG

    async def encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        return await asyncio.to_thread(self._encode, img, options)

    def _encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        if options.quality < 100:
            img = self._quantize(img, self._max_colors(options.quality))
        elif img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            img = self._to_rgb_or_rgba(img)

        data = self._save(img, options, format="PNG", optimize=True, compress_level=9)
        return self._run_oxipng(data)

    @staticmethod
    def _max_colors(quality: int) -> int:
        return 64 if quality < 50 else 256

    def _quantize(self, img: Image.Image, max_colors: int) -> Image.Image:
        if img.mode == "P":
            return img
        src = self._to_rgb_or_rgba(img)
        # MEDIANCUT only supports RGB; FASTOCTREE handles alpha
        method = Image.Quantize.FASTOCTREE if has_alpha(src) else Image.Quantize.MEDIANCUT
        quantized = src.quantize(colors=max_colors, method=method)
        quantized.info.update(
            {k: v for k, v in src.info.items() if k in ("icc_profile", "exif", "dpi")}
        )
        return quantized

    def _run_oxipng(self, data: bytes) -> bytes:
        """Lossless recompression via pyoxipng (in-process, no subprocess)."""
        import oxipng

        optimized = oxipng.optimize_from_memory(data, level=OXIPNG_LEVEL)
        return optimized if len(optimized) < len(data) else data
