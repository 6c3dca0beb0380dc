"""Print-file composer port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PrintFile:
    """A print-ready image held in memory until it is uploaded."""

    buffer: bytes
    filename: str
    width: int
    height: int
    content_type: str = "image/png"


def print_filename(order_id: str, print_size: str) -> str:
    return f"{order_id}_{print_size}_print.png"


class PrintFileComposer(ABC):
    def missing_configuration(self) -> list[str]:
        return []

    @abstractmethod
    def compose(self, image_url: str, print_size: str, order_id: str) -> PrintFile:
        """Lay the image out on a bordered canvas sized for ``print_size``."""
        ...
