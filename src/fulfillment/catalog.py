"""Print products offered to customers.

Each print size maps to one partner SKU, a physical size in millimetres and
a retail price in minor units. Prices are integers throughout; nothing in
the fulfillment path converts money to floating point.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError

MM_PER_INCH = 25.4
DEFAULT_PRINT_SIZE = "A3"

_CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€"}


class PrintSize(Enum):
    A4 = "A4"
    A3 = "A3"
    SQUARE_8X8 = "SQUARE_8X8"
    SQUARE_10X10 = "SQUARE_10X10"


@dataclass(frozen=True)
class ProductSpec:
    print_size: PrintSize
    sku: str
    width_mm: float
    height_mm: float
    retail_price: int  # minor units

    def pixel_size(self, dpi: int = 300) -> tuple[int, int]:
        """Canvas size in pixels for this product at ``dpi``."""
        return mm_to_px(self.width_mm, dpi), mm_to_px(self.height_mm, dpi)


PRODUCTS = {
    PrintSize.A4: ProductSpec(PrintSize.A4, "GLOBAL-FAP-A4", 210, 297, 3999),
    PrintSize.A3: ProductSpec(PrintSize.A3, "GLOBAL-FAP-A3", 297, 420, 5999),
    PrintSize.SQUARE_8X8: ProductSpec(PrintSize.SQUARE_8X8, "GLOBAL-FAP-8X8", 203, 203, 3499),
    PrintSize.SQUARE_10X10: ProductSpec(PrintSize.SQUARE_10X10, "GLOBAL-FAP-10X10", 254, 254, 4499),
}


def mm_to_px(mm: float, dpi: int) -> int:
    return round(mm * dpi / MM_PER_INCH)


def get_product_spec(print_size: str | PrintSize | None) -> ProductSpec:
    """Look up the product for a print size, defaulting to A3 when unset.

    Raises:
        ValidationError: the print size is not one we sell.
    """
    if print_size is None or print_size == "":
        print_size = DEFAULT_PRINT_SIZE
    try:
        size = print_size if isinstance(print_size, PrintSize) else PrintSize(str(print_size).upper())
    except ValueError:
        raise ValidationError({"print_size": [f"Unknown print size: {print_size}"]}) from None
    return PRODUCTS[size]


def format_minor_units(amount: int, currency: str = "GBP") -> str:
    """Render an integer minor-unit amount for display, e.g. 5999 -> '£59.99'."""
    currency = (currency or "GBP").upper()
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(int(amount)), 100)
    symbol = _CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{major}.{minor:02d}"
    return f"{sign}{major}.{minor:02d} {currency}"
