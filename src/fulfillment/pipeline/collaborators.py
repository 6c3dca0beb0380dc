"""The set of external collaborators one orchestrator works with.

Built once from settings and passed explicitly to whatever needs it; there
is no module-level registry of adapters.
"""

from dataclasses import dataclass

from fulfillment.errors import ConfigurationError
from fulfillment.gateway.fake_adapter import FakePaymentGateway
from fulfillment.gateway.port import PaymentGateway
from fulfillment.gateway.stripe_adapter import StripeGateway
from fulfillment.imaging.fake_adapter import FakeImageGenerator
from fulfillment.imaging.port import ImageGenerator
from fulfillment.imaging.replicate_adapter import ReplicateUpscaler
from fulfillment.partner.fake_adapter import FakePrintPartner
from fulfillment.partner.port import PrintPartner
from fulfillment.partner.prodigi_adapter import ProdigiClient
from fulfillment.pipeline.retry import RetryPolicy
from fulfillment.printfile.fake_adapter import FakePrintFileComposer
from fulfillment.printfile.pillow_composer import PillowPrintFileComposer
from fulfillment.printfile.port import PrintFileComposer
from fulfillment.settings import FulfillmentSettings
from fulfillment.storage.fake_adapter import FakeAssetUploader
from fulfillment.storage.port import AssetUploader
from fulfillment.storage.s3_adapter import S3AssetUploader

FAKE_WEBHOOK_SECRET = "whsec_test"


@dataclass
class Collaborators:
    gateway: PaymentGateway
    images: ImageGenerator
    composer: PrintFileComposer
    storage: AssetUploader
    partner: PrintPartner

    def missing_configuration(self) -> list[str]:
        """Settings the pipeline stages need but do not have."""
        missing: list[str] = []
        for collaborator in (self.images, self.composer, self.storage, self.partner):
            missing.extend(collaborator.missing_configuration())
        return missing

    def health_report(self) -> list[str]:
        """Every missing setting, payment gateway included."""
        return self.gateway.missing_configuration() + self.missing_configuration()

    @classmethod
    def fakes(cls, webhook_secret: str = FAKE_WEBHOOK_SECRET, dpi: int = 300) -> "Collaborators":
        return cls(
            gateway=FakePaymentGateway(webhook_secret=webhook_secret),
            images=FakeImageGenerator(),
            composer=FakePrintFileComposer(dpi=dpi),
            storage=FakeAssetUploader(),
            partner=FakePrintPartner(),
        )


def build_retry_policy(settings: FulfillmentSettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )


def build_collaborators(settings: FulfillmentSettings) -> Collaborators:
    if settings.adapters == "fake":
        return Collaborators.fakes(
            webhook_secret=settings.stripe_webhook_secret or FAKE_WEBHOOK_SECRET,
            dpi=settings.print_dpi,
        )
    if settings.adapters != "live":
        raise ValueError(f"Unknown adapter set: {settings.adapters!r} (expected 'fake' or 'live')")
    if not settings.stripe_webhook_secret:
        # A live gateway always verifies against a configured signing secret.
        raise ConfigurationError(["STRIPE_WEBHOOK_SECRET"])

    retry = build_retry_policy(settings)
    return Collaborators(
        gateway=StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            retry_policy=retry,
        ),
        images=ReplicateUpscaler(
            api_token=settings.replicate_api_token,
            base_url=settings.replicate_base_url,
            timeout_seconds=settings.image_timeout_seconds,
            poll_interval_seconds=settings.image_poll_interval_seconds,
            request_timeout_seconds=settings.http_timeout_seconds,
            retry_policy=retry,
        ),
        composer=PillowPrintFileComposer(
            dpi=settings.print_dpi,
            border_mm=settings.print_border_mm,
            timeout_seconds=settings.http_timeout_seconds,
            retry_policy=retry,
        ),
        storage=S3AssetUploader(
            bucket=settings.aws_s3_bucket,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            url_ttl_seconds=settings.signed_url_ttl_seconds,
            retry_policy=retry,
        ),
        partner=ProdigiClient(
            api_key=settings.prodigi_api_key,
            base_url=settings.prodigi_base_url,
            shipping_method=settings.prodigi_shipping_method,
            timeout_seconds=settings.http_timeout_seconds,
            retry_policy=retry,
        ),
    )
