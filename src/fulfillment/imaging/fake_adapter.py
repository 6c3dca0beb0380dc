"""Fake image generator: returns a predictable URL or a configured error."""

from fulfillment.imaging.port import ImageGenerator


class FakeImageGenerator(ImageGenerator):
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.calls: list[dict] = []

    def fail_with(self, error: Exception | None) -> None:
        """Raise ``error`` on every call until cleared with ``fail_with(None)``."""
        self.error = error

    def generate_hd(self, source_image_url: str, style: str | None, prompt: str | None) -> str:
        self.calls.append({"source_image_url": source_image_url, "style": style, "prompt": prompt})
        if self.error is not None:
            raise self.error
        return f"https://fake-images.example.com/hd/{len(self.calls)}.png"
