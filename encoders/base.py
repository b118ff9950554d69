import io
from abc import ABC, abstractmethod

from PIL import Image

from schemas import OutputFormat, ResolvedOptions
from utils.metadata import has_alpha, preserved_metadata


class BaseEncoder(ABC):
    """Abstract base for format-specific encoders."""

    format: OutputFormat

    @abstractmethod
    async def encode(self, img: Image.Image, options: ResolvedOptions) -> bytes:
        """Encode a decoded (and already resized) image.

        Args:
            img: Pillow image, geometry and effects applied.
            options: Fully resolved optimization options.

        Returns:
            Encoded output bytes.
        """

    def _save(self, img: Image.Image, options: ResolvedOptions, **save_kwargs) -> bytes:
        """Save to an in-memory buffer, forwarding metadata unless stripped."""
        buf = io.BytesIO()
        save_kwargs.update(preserved_metadata(img, options.strip))
        img.save(buf, **save_kwargs)
        return buf.getvalue()

    @staticmethod
    def _to_rgb_or_rgba(img: Image.Image) -> Image.Image:
        """Convert palette/grayscale/CMYK/16-bit modes to 8-bit RGB(A)."""
        if img.mode in ("RGB", "RGBA"):
            return img
        converted = img.convert("RGBA" if has_alpha(img) else "RGB")
        converted.info = img.info
        return converted
