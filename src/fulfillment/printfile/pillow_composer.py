"""Pillow print-file composer.

Downloads the HD image, fits it inside the art area of a white canvas sized
for the product at the print DPI (a fixed border on every side), and
encodes the result as PNG with the DPI recorded.
"""

from io import BytesIO

import httpx
import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from fulfillment.catalog import get_product_spec, mm_to_px
from fulfillment.errors import CollaboratorError, TransientCollaboratorError
from fulfillment.pipeline.retry import RetryPolicy
from fulfillment.printfile.port import PrintFile, PrintFileComposer, print_filename

logger = structlog.get_logger(__name__)

SERVICE = "print-file"


class PillowPrintFileComposer(PrintFileComposer):
    def __init__(
        self,
        dpi: int = 300,
        border_mm: float = 10.0,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.dpi = dpi
        self.border_mm = border_mm
        self.retry_policy = retry_policy or RetryPolicy()
        self.client = httpx.Client(timeout=timeout_seconds, transport=transport, follow_redirects=True)

    def _download(self, url: str) -> bytes:
        def attempt():
            try:
                response = self.client.get(url)
            except httpx.TransportError as exc:
                raise TransientCollaboratorError(SERVICE, f"Download failed: {exc}") from exc
            if response.status_code >= 500 or response.status_code == 429:
                raise TransientCollaboratorError(SERVICE, f"Download failed: {response.status_code}")
            if not response.is_success:
                raise CollaboratorError(SERVICE, f"Download failed: {response.status_code}")
            return response.content

        return self.retry_policy.call(attempt, description="download hd image")

    def layout(self, print_size: str) -> tuple[tuple[int, int], tuple[int, int]]:
        """Canvas size and art-area size in pixels."""
        canvas = get_product_spec(print_size).pixel_size(self.dpi)
        border = mm_to_px(self.border_mm, self.dpi)
        art = (canvas[0] - 2 * border, canvas[1] - 2 * border)
        return canvas, art

    def render(self, source: bytes, print_size: str) -> Image.Image:
        try:
            image = Image.open(BytesIO(source))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise CollaboratorError(SERVICE, f"Unreadable image: {exc}") from exc

        image = ImageOps.exif_transpose(image).convert("RGB")
        canvas_size, art_size = self.layout(print_size)
        fitted = ImageOps.contain(image, art_size, method=Image.Resampling.LANCZOS)

        canvas = Image.new("RGB", canvas_size, "white")
        offset = ((canvas_size[0] - fitted.width) // 2, (canvas_size[1] - fitted.height) // 2)
        canvas.paste(fitted, offset)
        return canvas

    def compose(self, image_url: str, print_size: str, order_id: str) -> PrintFile:
        canvas = self.render(self._download(image_url), print_size)
        out = BytesIO()
        canvas.save(out, format="PNG", dpi=(self.dpi, self.dpi))
        logger.info("Print file composed", order_id=order_id, print_size=print_size, size=canvas.size)
        return PrintFile(
            buffer=out.getvalue(),
            filename=print_filename(order_id, print_size),
            width=canvas.width,
            height=canvas.height,
        )
