"""Tests for the format-specific encoders."""

import io
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from config import settings
from encoders.avif import AvifEncoder
from encoders.jpeg import JpegEncoder
from encoders.png import PngEncoder
from encoders.registry import ENCODERS, get_encoder
from encoders.webp import WebpEncoder
from helpers import make_image
from pipeline.resolver import resolve_options
from schemas import OutputFormat


def _opts(**kwargs):
    return resolve_options(kwargs, "x.jpg")


def _open(data: bytes) -> Image.Image:
    import pillow_avif  # noqa: F401

    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_registry_covers_every_output_format():
    assert set(ENCODERS) == set(OutputFormat)
    assert isinstance(get_encoder("webp"), WebpEncoder)
    assert isinstance(get_encoder(OutputFormat.PNG), PngEncoder)


@pytest.mark.asyncio
async def test_webp_encode():
    data = await WebpEncoder().encode(make_image((64, 64)), _opts(format="webp", quality=70))
    img = _open(data)
    assert img.format == "WEBP"
    assert img.size == (64, 64)


@pytest.mark.asyncio
async def test_webp_keeps_alpha():
    data = await WebpEncoder().encode(make_image((64, 64), "RGBA"), _opts(format="webp"))
    assert _open(data).mode == "RGBA"


@pytest.mark.asyncio
async def test_webp_lower_quality_is_smaller():
    img = make_image((256, 256))
    high = await WebpEncoder().encode(img, _opts(format="webp", quality=95))
    low = await WebpEncoder().encode(img, _opts(format="webp", quality=10))
    assert len(low) < len(high)


@pytest.mark.asyncio
async def test_avif_encode():
    data = await AvifEncoder().encode(make_image((64, 64)), _opts(format="avif", quality=50))
    img = _open(data)
    assert img.format == "AVIF"
    assert img.size == (64, 64)


@pytest.mark.asyncio
async def test_jpeg_progressive_flag():
    data = await JpegEncoder().encode(make_image((64, 64)), _opts(format="jpeg", progressive=True))
    img = _open(data)
    assert img.format == "JPEG"
    assert img.info.get("progressive") or img.info.get("progression")


@pytest.mark.asyncio
async def test_jpeg_baseline_when_not_progressive():
    data = await JpegEncoder().encode(make_image((64, 64)), _opts(format="jpeg", progressive=False))
    img = _open(data)
    assert not img.info.get("progressive")


@pytest.mark.asyncio
async def test_jpeg_flattens_alpha():
    data = await JpegEncoder().encode(make_image((32, 32), "RGBA"), _opts(format="jpeg"))
    assert _open(data).mode == "RGB"


@pytest.mark.asyncio
async def test_jpeg_strip_false_keeps_icc_profile():
    img = make_image((32, 32))
    img.info["icc_profile"] = _srgb_profile()
    data = await JpegEncoder().encode(img, _opts(format="jpeg", strip=False))
    assert _open(data).info.get("icc_profile")


@pytest.mark.asyncio
async def test_jpeg_strip_drops_icc_profile():
    img = make_image((32, 32))
    img.info["icc_profile"] = _srgb_profile()
    data = await JpegEncoder().encode(img, _opts(format="jpeg", strip=True))
    assert not _open(data).info.get("icc_profile")


@pytest.mark.asyncio
async def test_jpeg_cjpeg_path(monkeypatch):
    """JPEG_ENCODER=cjpeg + mozjpeg hint -> BMP piped through cjpeg."""
    monkeypatch.setattr(settings, "jpeg_encoder", "cjpeg")
    mock_run = AsyncMock(return_value=b"\xff\xd8\xffmozjpeg")
    with patch("encoders.jpeg.shutil.which", return_value="/usr/bin/cjpeg"):
        with patch("encoders.jpeg.run_tool", mock_run):
            data = await JpegEncoder().encode(
                make_image((16, 16)), _opts(format="jpeg", quality=77, progressive=True)
            )

    assert data == b"\xff\xd8\xffmozjpeg"
    cmd, stdin = mock_run.call_args.args
    assert cmd[:3] == ["cjpeg", "-quality", "77"]
    assert "-progressive" in cmd
    assert stdin[:2] == b"BM"


@pytest.mark.asyncio
async def test_jpeg_cjpeg_missing_falls_back(monkeypatch):
    monkeypatch.setattr(settings, "jpeg_encoder", "cjpeg")
    mock_run = AsyncMock()
    with patch("encoders.jpeg.shutil.which", return_value=None):
        with patch("encoders.jpeg.run_tool", mock_run):
            data = await JpegEncoder().encode(make_image((16, 16)), _opts(format="jpeg"))
    mock_run.assert_not_called()
    assert _open(data).format == "JPEG"


@pytest.mark.asyncio
async def test_jpeg_plain_hint_skips_cjpeg(monkeypatch):
    monkeypatch.setattr(settings, "jpeg_encoder", "cjpeg")
    mock_run = AsyncMock()
    with patch("encoders.jpeg.shutil.which", return_value="/usr/bin/cjpeg"):
        with patch("encoders.jpeg.run_tool", mock_run):
            await JpegEncoder().encode(make_image((16, 16)), _opts(format="jpeg", compression="jpeg"))
    mock_run.assert_not_called()


@pytest.mark.asyncio
async def test_png_quantizes_below_100():
    data = await PngEncoder().encode(make_image((64, 64)), _opts(format="png", quality=80))
    img = _open(data)
    assert img.format == "PNG"
    assert img.mode == "P"


@pytest.mark.asyncio
async def test_png_low_quality_uses_small_palette():
    data = await PngEncoder().encode(make_image((64, 64)), _opts(format="png", quality=30))
    img = _open(data)
    assert len(img.convert("RGB").getcolors(maxcolors=1024)) <= 64


@pytest.mark.asyncio
async def test_png_quality_100_is_lossless():
    src = make_image((64, 64))
    data = await PngEncoder().encode(src, _opts(format="png", quality=100))
    img = _open(data).convert("RGB")
    assert list(img.getdata()) == list(src.getdata())


@pytest.mark.asyncio
async def test_png_keeps_transparency():
    data = await PngEncoder().encode(make_image((64, 64), "RGBA"), _opts(format="png", quality=80))
    img = _open(data)
    assert img.mode in ("P", "RGBA")
    assert "transparency" in img.info or img.mode == "RGBA"


def test_png_oxipng_never_grows_output():
    encoder = PngEncoder()
    with patch("oxipng.optimize_from_memory", return_value=b"x" * 1000):
        assert encoder._run_oxipng(b"small") == b"small"


def _srgb_profile() -> bytes:
    from PIL import ImageCms

    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
