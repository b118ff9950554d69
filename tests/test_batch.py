"""Tests for batch and responsive orchestration."""

import asyncio
import logging

import pytest

from exceptions import SourceNotFoundError, TranscodeTimeoutError
from pipeline.batch import create_responsive, optimize_many
from pipeline.service import DEFAULT_RESPONSIVE_SIZES
from schemas import OptimizationOptions, ResponsiveSize


@pytest.mark.asyncio
async def test_batch_skips_missing_file(optimizer, write_image, source_dir, caplog):
    paths = [write_image(f"img{i}.jpg", size=(40, 40)) for i in range(4)]
    paths.insert(2, str(source_dir / "missing.jpg"))

    caplog.set_level(logging.WARNING, logger="whittle.pipeline.batch")
    results = await optimizer.optimize_images(paths)

    assert len(results) == 4
    warnings = [
        r for r in caplog.records
        if r.name == "whittle.pipeline.batch" and r.levelno == logging.WARNING
    ]
    assert len(warnings) == 1
    assert "missing.jpg" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_batch_preserves_input_order(optimizer, write_image):
    names = ["c.jpg", "a.png", "b.webp", "d.gif", "e.jpg"]
    paths = [write_image(n, size=(30, 30)) for n in names]
    results = await optimizer.optimize_images(paths)
    stems = [r.path.rsplit("/", 1)[-1].split("-")[0] for r in results]
    assert stems == ["c", "a", "b", "d", "e"]


@pytest.mark.asyncio
async def test_batch_report_lists_failures(optimizer, write_image, source_dir):
    good = write_image("good.jpg", size=(20, 20))
    report = await optimizer.optimize_images_report([good, source_dir / "gone.png"])

    assert report.requested == 2
    assert len(report.results) == 1
    assert len(report.errors) == 1
    assert report.errors[0].source.endswith("gone.png")
    assert report.errors[0].error_code == "source_not_found"
    assert isinstance(report.errors[0].error, SourceNotFoundError)


@pytest.mark.asyncio
async def test_batch_shares_options(optimizer, write_image):
    paths = [write_image(f"p{i}.png", size=(80, 80)) for i in range(3)]
    results = await optimizer.optimize_images(paths, {"width": 40, "format": "png"})
    assert all(r.dimensions.width == 40 for r in results)
    assert all(r.path.endswith(".png") for r in results)


@pytest.mark.asyncio
async def test_empty_batch(optimizer):
    assert await optimizer.optimize_images([]) == []


@pytest.mark.asyncio
async def test_concurrency_limit_respected():
    active = 0
    peak = 0

    async def fake_optimize(path, options):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return path

    outcome = await optimize_many(fake_optimize, [str(i) for i in range(10)], concurrency=3)

    assert peak == 3
    assert outcome.results == [str(i) for i in range(10)]


@pytest.mark.asyncio
async def test_timeout_is_a_per_item_failure():
    async def fake_optimize(path, options):
        if path == "slow":
            raise TranscodeTimeoutError("timed out", source=path)
        return path

    outcome = await optimize_many(fake_optimize, ["a", "slow", "b"])

    assert outcome.results == ["a", "b"]
    assert [e.source for e in outcome.errors] == ["slow"]
    assert outcome.errors[0].error_code == "transcode_timeout"


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated():
    async def fake_optimize(path, options):
        if path == "bad":
            raise RuntimeError("boom")
        return path

    outcome = await optimize_many(fake_optimize, ["bad", "ok"])
    assert outcome.results == ["ok"]
    assert outcome.errors[0].error_code == "RuntimeError"
    assert outcome.errors[0].message == "boom"


# --- Responsive ---


@pytest.mark.asyncio
async def test_responsive_one_output_per_size(optimizer, write_image):
    src = write_image("hero.jpg", size=(800, 600))
    results = await optimizer.create_responsive_images(
        src, [{"width": 200}, {"width": 400}, {"width": 100, "height": 100}], {"fit": "cover"}
    )

    assert [(r.dimensions.width, r.dimensions.height) for r in results] == [
        (200, 150),
        (400, 300),
        (100, 100),
    ]
    assert len({r.path for r in results}) == 3


@pytest.mark.asyncio
async def test_responsive_sizes_override_base_dimensions():
    seen = []

    async def fake_optimize(path, options):
        seen.append((options.width, options.height, options.quality))
        return options

    base = OptimizationOptions(width=999, height=999, quality=60)
    await create_responsive(
        fake_optimize, "x.jpg", [ResponsiveSize(width=100), ResponsiveSize(width=50, height=20)], base
    )

    assert seen == [(100, None, 60), (50, 20, 60)]


@pytest.mark.asyncio
async def test_responsive_default_sizes(optimizer, write_image):
    src = write_image("wide.png", size=(4000, 100))
    results = await optimizer.create_responsive_images(src)
    widths = [r.dimensions.width for r in results]
    assert widths == [s.width for s in DEFAULT_RESPONSIVE_SIZES]


@pytest.mark.asyncio
async def test_responsive_missing_source_returns_empty(optimizer, source_dir, caplog):
    caplog.set_level(logging.WARNING, logger="whittle.pipeline.batch")
    results = await optimizer.create_responsive_images(
        source_dir / "nope.jpg", [{"width": 100}, {"width": 200}]
    )
    assert results == []
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2
