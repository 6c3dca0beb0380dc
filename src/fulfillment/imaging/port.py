"""Image generation port: high-resolution artwork from an approved preview."""

from abc import ABC, abstractmethod


class ImageGenerator(ABC):
    def missing_configuration(self) -> list[str]:
        return []

    @abstractmethod
    def generate_hd(self, source_image_url: str, style: str | None, prompt: str | None) -> str:
        """Produce a print-resolution image and return its URL.

        Raises:
            RateLimitedError: throttled after the retry budget was spent.
            QuotaExceededError: the account is out of credits.
            GenerationTimeoutError: generation missed the client-side deadline.
        """
        ...
