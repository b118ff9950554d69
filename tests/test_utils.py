"""Tests for utils modules: subprocess_runner, concurrency, metadata."""

import asyncio
import io
import sys

import pytest
from PIL import Image

from exceptions import ToolError, TranscodeTimeoutError
from helpers import make_image
from utils.concurrency import chunked, with_timeout
from utils.metadata import has_alpha, inspect_image, normalize_orientation, preserved_metadata
from utils.subprocess_runner import run_tool

# --- subprocess_runner ---


@pytest.mark.asyncio
async def test_run_tool_pipes_stdin_to_stdout():
    stdout = await run_tool(
        [sys.executable, "-c", "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"],
        b"input data",
    )
    assert stdout == b"input data"


@pytest.mark.asyncio
async def test_run_tool_timeout():
    with pytest.raises(TranscodeTimeoutError):
        await run_tool([sys.executable, "-c", "import time; time.sleep(10)"], b"", timeout=0.5)


@pytest.mark.asyncio
async def test_run_tool_nonzero_exit():
    with pytest.raises(ToolError) as exc_info:
        await run_tool(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"], b""
        )
    assert exc_info.value.details["exit_code"] == 3
    assert "bad input" in exc_info.value.message


# --- concurrency ---


def test_chunked():
    assert chunked(range(7), 3) == [[0, 1, 2], [3, 4, 5], [6]]
    assert chunked([], 3) == []


def test_chunked_rejects_zero():
    with pytest.raises(ValueError):
        chunked([1], 0)


@pytest.mark.asyncio
async def test_with_timeout_passes_result():
    async def quick():
        return 42

    assert await with_timeout(quick(), 1, "quick") == 42


@pytest.mark.asyncio
async def test_with_timeout_raises():
    with pytest.raises(TranscodeTimeoutError) as exc_info:
        await with_timeout(asyncio.sleep(5), 0.01, "slow.jpg")
    assert exc_info.value.details["source"] == "slow.jpg"


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [None, 0])
async def test_with_timeout_disabled(timeout):
    async def value():
        await asyncio.sleep(0)
        return "done"

    assert await with_timeout(value(), timeout, "x") == "done"


# --- metadata ---


def _encode(img: Image.Image, fmt: str, **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def test_inspect_rgb_png():
    meta = inspect_image(_encode(make_image((30, 20)), "PNG"))
    assert meta.format == "png"
    assert (meta.width, meta.height) == (30, 20)
    assert meta.channels == 3
    assert meta.depth == "uchar"
    assert meta.has_alpha is False
    assert meta.has_profile is False


def test_inspect_rgba():
    meta = inspect_image(_encode(make_image((10, 10), "RGBA"), "PNG"))
    assert meta.channels == 4
    assert meta.has_alpha is True


def test_inspect_16bit_depth():
    img = Image.new("I;16", (4, 4), 1000)
    assert inspect_image(_encode(img, "PNG")).depth in ("ushort", "int")


def test_inspect_density():
    meta = inspect_image(_encode(make_image((10, 10)), "JPEG", dpi=(150, 150)))
    assert meta.density == pytest.approx(150, abs=1)


def test_inspect_palette_with_transparency():
    img = Image.new("P", (10, 10), 0)
    meta = inspect_image(_encode(img, "PNG", transparency=0))
    assert meta.channels == 4
    assert meta.has_alpha is True


def test_has_alpha_modes():
    assert has_alpha(Image.new("LA", (1, 1)))
    assert not has_alpha(Image.new("RGB", (1, 1)))


def test_preserved_metadata_strip():
    img = make_image((4, 4))
    img.info["icc_profile"] = b"profile"
    img.info["exif"] = b"Exif\x00\x00"
    assert preserved_metadata(img, strip=True) == {}
    assert preserved_metadata(img, strip=False) == {"icc_profile": b"profile", "exif": b"Exif\x00\x00"}


def test_normalize_orientation_rotates_pixels():
    img = make_image((40, 20))
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    data = _encode(img, "JPEG", exif=exif.tobytes())

    loaded = Image.open(io.BytesIO(data))
    loaded.load()
    upright = normalize_orientation(loaded)

    assert upright.size == (20, 40)
    assert upright.format == "JPEG"


def test_normalize_orientation_no_exif():
    img = make_image((40, 20))
    assert normalize_orientation(img).size == (40, 20)


@pytest.mark.asyncio
async def test_run_tool_missing_executable():
    with pytest.raises(ToolError):
        await run_tool(["whittle-no-such-encoder"], b"")


@pytest.mark.asyncio
async def test_run_tool_empty_output():
    with pytest.raises(ToolError):
        await run_tool([sys.executable, "-c", "pass"], b"")
