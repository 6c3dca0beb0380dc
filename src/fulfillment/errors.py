"""Errors raised by the external collaborators and the pipeline.

Domain rule violations use ``protean.exceptions.ValidationError``; the
classes here describe failures outside the domain: missing configuration,
unreachable or unhappy external services, and forged webhooks.
"""


class FulfillmentError(Exception):
    """Base class for fulfillment infrastructure errors."""


class ConfigurationError(FulfillmentError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


class WebhookSignatureError(FulfillmentError):
    """The payment notification could not be authenticated."""


class CollaboratorError(FulfillmentError):
    """An external service call failed and should not be repeated as-is."""

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        self.message = message
        super().__init__(f"{service}: {message}")


class TransientCollaboratorError(CollaboratorError):
    """A failure that may succeed on a later attempt (network, 5xx, throttling)."""


class RateLimitedError(TransientCollaboratorError):
    def __init__(self, service: str, message: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(service, message)


class QuotaExceededError(CollaboratorError):
    """The account has run out of credits; retrying will not help."""


class GenerationTimeoutError(CollaboratorError):
    """Image generation did not finish before the client-side deadline."""


class PartnerError(CollaboratorError):
    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__("print-partner", f"Print partner submission failed: {status_code} - {body}")


class PartnerUnavailableError(PartnerError, TransientCollaboratorError):
    """Partner responded with throttling or a server error."""


class RefundFailedError(CollaboratorError):
    pass
