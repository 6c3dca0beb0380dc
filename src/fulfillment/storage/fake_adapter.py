"""In-memory asset store for development and tests."""

from fulfillment.storage.port import AssetUploader, UploadResult, asset_key


class FakeAssetUploader(AssetUploader):
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.error: Exception | None = None

    def fail_with(self, error: Exception | None) -> None:
        self.error = error

    def upload(self, buffer: bytes, filename: str, order_id: str, content_type: str = "image/png") -> UploadResult:
        if self.error is not None:
            raise self.error
        key = asset_key(order_id, filename)
        self.objects[key] = buffer
        return UploadResult(key=key, url=f"https://fake-assets.example.com/{key}?signature=fake")
