from encoders.avif import AvifEncoder
from encoders.base import BaseEncoder
from encoders.jpeg import JpegEncoder
from encoders.png import PngEncoder
from encoders.webp import WebpEncoder
from schemas import OutputFormat


# Encoder registry, built once at import time
ENCODERS: dict[OutputFormat, BaseEncoder] = {
    OutputFormat.WEBP: WebpEncoder(),
    OutputFormat.AVIF: AvifEncoder(),
    OutputFormat.JPEG: JpegEncoder(),
    OutputFormat.PNG: PngEncoder(),
}


def get_encoder(fmt: OutputFormat) -> BaseEncoder:
    """Look up the encoder for an output format."""
    return ENCODERS[OutputFormat(fmt)]
