"""Asset storage port: durable home for print-ready files."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class UploadResult:
    key: str
    url: str  # time-limited signed URL the print partner can fetch


def asset_key(order_id: str, filename: str) -> str:
    return f"print-assets/{order_id}/{filename}"


class AssetUploader(ABC):
    def missing_configuration(self) -> list[str]:
        return []

    @abstractmethod
    def upload(self, buffer: bytes, filename: str, order_id: str, content_type: str = "image/png") -> UploadResult:
        ...
