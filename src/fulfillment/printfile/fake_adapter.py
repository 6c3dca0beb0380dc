"""Fake composer: returns a tiny placeholder file of the right pixel size."""

from fulfillment.catalog import get_product_spec
from fulfillment.printfile.port import PrintFile, PrintFileComposer, print_filename


class FakePrintFileComposer(PrintFileComposer):
    def __init__(self, dpi: int = 300) -> None:
        self.dpi = dpi
        self.error: Exception | None = None
        self.calls: list[dict] = []

    def fail_with(self, error: Exception | None) -> None:
        self.error = error

    def compose(self, image_url: str, print_size: str, order_id: str) -> PrintFile:
        self.calls.append({"image_url": image_url, "print_size": print_size, "order_id": order_id})
        if self.error is not None:
            raise self.error
        width, height = get_product_spec(print_size).pixel_size(self.dpi)
        return PrintFile(
            buffer=b"\x89PNG fake " + image_url.encode(),
            filename=print_filename(order_id, print_size),
            width=width,
            height=height,
        )
