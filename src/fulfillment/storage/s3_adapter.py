"""S3 asset uploader.

Objects stay private; the partner receives a presigned GET URL that expires
after ``url_ttl_seconds`` (24 hours by default).
"""

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fulfillment.errors import CollaboratorError, TransientCollaboratorError
from fulfillment.pipeline.retry import RetryPolicy
from fulfillment.storage.port import AssetUploader, UploadResult, asset_key

logger = structlog.get_logger(__name__)

SERVICE = "s3"
_TRANSIENT_CODES = {"SlowDown", "RequestTimeout", "InternalError", "ServiceUnavailable", "Throttling"}


class S3AssetUploader(AssetUploader):
    def __init__(
        self,
        bucket: str,
        region: str = "eu-north-1",
        access_key_id: str = "",
        secret_access_key: str = "",
        url_ttl_seconds: int = 24 * 60 * 60,
        retry_policy: RetryPolicy | None = None,
        client=None,
    ) -> None:
        self.bucket = bucket
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.url_ttl_seconds = url_ttl_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.s3 = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=Config(signature_version="s3v4"),
        )

    def missing_configuration(self) -> list[str]:
        missing = []
        if not self.access_key_id:
            missing.append("AWS_ACCESS_KEY_ID")
        if not self.secret_access_key:
            missing.append("AWS_SECRET_ACCESS_KEY")
        if not self.bucket:
            missing.append("AWS_S3_BUCKET")
        return missing

    def _put(self, key: str, buffer: bytes, content_type: str) -> None:
        def attempt():
            try:
                self.s3.put_object(Bucket=self.bucket, Key=key, Body=buffer, ContentType=content_type)
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
                if code in _TRANSIENT_CODES or status >= 500:
                    raise TransientCollaboratorError(SERVICE, f"{code or status}: {exc}") from exc
                raise CollaboratorError(SERVICE, f"{code or status}: {exc}") from exc
            except BotoCoreError as exc:
                raise TransientCollaboratorError(SERVICE, str(exc)) from exc

        self.retry_policy.call(attempt, description=f"s3 put {key}")

    def upload(self, buffer: bytes, filename: str, order_id: str, content_type: str = "image/png") -> UploadResult:
        key = asset_key(order_id, filename)
        self._put(key, buffer, content_type)
        url = self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.url_ttl_seconds,
        )
        logger.info("Print asset uploaded", order_id=order_id, key=key, bytes=len(buffer))
        return UploadResult(key=key, url=url)
