from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from config import Settings, settings
from helpers import FakeClock, make_image
from main import app
from pipeline.service import ImageOptimizer, get_image_optimizer


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def source_dir(tmp_path) -> Path:
    path = tmp_path / "src"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "optimized-images"


@pytest.fixture
def write_image(source_dir):
    """Factory: write a generated image under source_dir, return its path."""

    def _write(name: str, size=(200, 400), mode="RGB", **save_kwargs) -> str:
        path = source_dir / name
        img = make_image(size, mode)
        if path.suffix.lower() == ".avif":
            import pillow_avif  # noqa: F401
        img.save(path, **save_kwargs)
        return str(path)

    return _write


@pytest.fixture
def test_settings(source_dir, output_dir) -> Settings:
    return Settings(
        source_dir=str(source_dir),
        output_dir=str(output_dir),
        public_url_prefix="/optimized-images",
        transcode_timeout_seconds=30,
    )


@pytest.fixture
def optimizer(test_settings, fake_clock) -> ImageOptimizer:
    return ImageOptimizer(settings=test_settings, clock=fake_clock)


@pytest.fixture
def client(optimizer, source_dir, monkeypatch):
    """FastAPI test client wired to a tmp_path-scoped optimizer."""
    monkeypatch.setattr(settings, "source_dir", str(source_dir))
    monkeypatch.setattr(settings, "api_key", "")
    app.dependency_overrides[get_image_optimizer] = lambda: optimizer
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def png_bytes():
    import io

    buf = io.BytesIO()
    make_image((120, 80)).save(buf, format="PNG")
    return buf.getvalue()
