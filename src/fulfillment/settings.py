"""Runtime settings for the fulfillment service, read from the environment."""

import os
from dataclasses import dataclass


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class FulfillmentSettings:
    """Credentials, adapter selection and tunables for the pipeline.

    ``adapters`` selects the collaborator implementations: ``"fake"`` wires the
    in-process fakes used in development and tests, ``"live"`` wires Stripe,
    Replicate, S3 and Prodigi.
    """

    adapters: str = "fake"
    require_print_approval: bool = True

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    replicate_api_token: str = ""
    replicate_base_url: str = "https://api.replicate.com/v1"
    image_timeout_seconds: float = 120.0
    image_poll_interval_seconds: float = 3.0

    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_s3_bucket: str = "taletoprint-assets"
    aws_region: str = "eu-north-1"
    signed_url_ttl_seconds: int = 24 * 60 * 60

    prodigi_api_key: str = ""
    prodigi_base_url: str = "https://api.prodigi.com/v4.0"
    prodigi_shipping_method: str = "Standard"

    print_dpi: int = 300
    print_border_mm: float = 10.0

    http_timeout_seconds: float = 30.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0

    admin_api_token: str = ""

    @classmethod
    def from_env(cls) -> "FulfillmentSettings":
        return cls(
            adapters=os.getenv("FULFILLMENT_ADAPTERS", "fake").strip().lower(),
            require_print_approval=_flag("REQUIRE_PRINT_APPROVAL", True),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            replicate_api_token=os.getenv("REPLICATE_API_TOKEN", ""),
            replicate_base_url=os.getenv("REPLICATE_BASE_URL", "https://api.replicate.com/v1"),
            image_timeout_seconds=_float("IMAGE_TIMEOUT_SECONDS", 120.0),
            image_poll_interval_seconds=_float("IMAGE_POLL_INTERVAL_SECONDS", 3.0),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", ""),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", ""),
            aws_s3_bucket=os.getenv("AWS_S3_BUCKET", "taletoprint-assets"),
            aws_region=os.getenv("AWS_REGION", "eu-north-1"),
            signed_url_ttl_seconds=_int("SIGNED_URL_TTL_SECONDS", 24 * 60 * 60),
            prodigi_api_key=os.getenv("PRODIGI_API_KEY", ""),
            prodigi_base_url=os.getenv("PRODIGI_BASE_URL", "https://api.prodigi.com/v4.0"),
            prodigi_shipping_method=os.getenv("PRODIGI_SHIPPING_METHOD", "Standard"),
            print_dpi=_int("PRINT_DPI", 300),
            print_border_mm=_float("PRINT_BORDER_MM", 10.0),
            http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", 30.0),
            retry_max_attempts=_int("RETRY_MAX_ATTEMPTS", 3),
            retry_base_delay_seconds=_float("RETRY_BASE_DELAY_SECONDS", 1.0),
            retry_max_delay_seconds=_float("RETRY_MAX_DELAY_SECONDS", 10.0),
            admin_api_token=os.getenv("ADMIN_API_TOKEN", ""),
        )
