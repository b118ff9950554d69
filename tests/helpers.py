from PIL import Image, ImageDraw


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_image(size=(200, 400), mode="RGB") -> Image.Image:
    """A non-flat test image: colored background with two shapes."""
    img = Image.new("RGBA", size, (40, 120, 200, 255))
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.ellipse((w // 8, h // 8, w // 2, h // 2), fill=(230, 60, 40, 255))
    draw.rectangle((w // 2, h // 2, max(w // 2, w - 4), max(h // 2, h - 4)), fill=(250, 220, 30, 128))
    return img.convert(mode)
