import asyncio
import io
import shutil

from PIL import Image

from config import settings
from encoders.base import BaseEncoder
from schemas import CompressionHint, OutputFormat, ResolvedOptions
from utils.logging import get_logger
from utils.subprocess_runner import run_tool

logger = get_logger("encoders.jpeg")


class JpegEncoder(BaseEncoder):
    """JPEG via Pillow, or MozJPEG cjpeg when configured.

    Pipeline:
    1. Flatten to RGB (JPEG has no alpha); grayscale stays L
    2. compression=mozjpeg + JPEG_ENCODER=cjpeg + cjpeg on PATH + strip:
       pipe a BMP through cjpeg
    3. Otherwise Pillow encode: quality, progressive, 4:2:0, and
       optimized Huffman tables for the mozjpeg hint

    cjpeg never carries metadata, so strip=False always takes the
    Pillow path.
    """

    format = OutputFormat.JPEG

    async def encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        img = self._flatten(img)

        if self._use_cjpeg(options):
            bmp_data = await asyncio.to_thread(self._to_bmp, img)
            return await self._run_cjpeg(bmp_data, options.quality, options.progressive)

        return await asyncio.to_thread(self._pillow_encode, img, options)

    def _use_cjpeg(self, options: ResolvedOptions) -> bool:
        if options.compression != CompressionHint.MOZJPEG or not options.strip:
            return False
        if settings.jpeg_encoder != "cjpeg":
            return False
        if not shutil.which("cjpeg"):
            logger.warning("JPEG_ENCODER=cjpeg but cjpeg not found on PATH, using Pillow")
            return False
        return True

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        if img.mode in ("RGB", "L"):
            return img
        converted = img.convert("RGB")
        converted.info = img.info
        return converted

    def _pillow_encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        """In-process JPEG encode via Pillow (libjpeg-turbo)."""
        save_kwargs: dict = {
            "format": "JPEG",
            "quality": options.quality,
            "optimize": options.compression == CompressionHint.MOZJPEG,
        }
        if options.progressive:
            save_kwargs["progressive"] = True
        if img.mode == "RGB":
            save_kwargs["subsampling"] = "4:2:0"
        return self._save(img, options, **save_kwargs)

    @staticmethod
    def _to_bmp(img: Image.Image) -> bytes:
        output = io.BytesIO()
        img.save(output, format="BMP")
        return output.getvalue()

    async def _run_cjpeg(self, bmp_data: bytes, quality: int, progressive: bool) -> bytes:
        """Run MozJPEG cjpeg on BMP input (4:2:0 sampling)."""
        cmd = ["cjpeg", "-quality", str(quality), "-sample", "2x2", "-optimize"]
        if progressive:
            cmd.append("-progressive")
        return await run_tool(cmd, bmp_data)
