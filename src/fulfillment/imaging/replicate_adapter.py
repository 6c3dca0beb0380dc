"""Replicate adapter: 4x Real-ESRGAN upscale of the preview image.

A prediction is created and then polled until it settles or the generation
deadline passes. Each HTTP request runs under the shared retry policy;
the deadline itself is never retried.
"""

import time
from collections.abc import Callable

import httpx
import structlog

from fulfillment.errors import (
    CollaboratorError,
    GenerationTimeoutError,
    QuotaExceededError,
    RateLimitedError,
    TransientCollaboratorError,
)
from fulfillment.imaging.port import ImageGenerator
from fulfillment.pipeline.retry import RetryPolicy

logger = structlog.get_logger(__name__)

SERVICE = "replicate"
REAL_ESRGAN_VERSION = "42fed1c4974146d4d2414e2be2c5277c7fcf05fcc3a73abf41610695738c1d7b"
_TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        try:
            raw = response.json().get("retry_after")
        except ValueError:
            return None
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    body = response.text[:500]
    if response.status_code == 402:
        raise QuotaExceededError(SERVICE, f"Insufficient credits: {body}")
    if response.status_code == 429:
        raise RateLimitedError(SERVICE, f"Rate limited: {body}", retry_after=_retry_after(response))
    if response.status_code >= 500:
        raise TransientCollaboratorError(SERVICE, f"{response.status_code} - {body}")
    raise CollaboratorError(SERVICE, f"{response.status_code} - {body}")


class ReplicateUpscaler(ImageGenerator):
    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 3.0,
        request_timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self.sleep = sleep
        self.client = httpx.Client(
            base_url=base_url,
            timeout=request_timeout_seconds,
            transport=transport,
            headers={"Authorization": f"Bearer {api_token}"},
        )

    def missing_configuration(self) -> list[str]:
        return [] if self.api_token else ["REPLICATE_API_TOKEN"]

    def _request(self, method: str, url: str, **kwargs) -> dict:
        def attempt():
            try:
                response = self.client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                raise TransientCollaboratorError(SERVICE, f"{type(exc).__name__}: {exc}") from exc
            _raise_for_status(response)
            return response.json()

        return self.retry_policy.call(attempt, description=f"replicate {method} {url}")

    def generate_hd(self, source_image_url: str, style: str | None, prompt: str | None) -> str:
        logger.info("Starting HD upscale", source_image_url=source_image_url, style=style)
        prediction = self._request(
            "POST",
            "/predictions",
            json={
                "version": REAL_ESRGAN_VERSION,
                "input": {"image": source_image_url, "scale": 4, "face_enhance": False},
            },
        )

        deadline = self.clock() + self.timeout_seconds
        while prediction.get("status") not in _TERMINAL_STATUSES:
            if self.clock() >= deadline:
                raise GenerationTimeoutError(
                    SERVICE, f"Prediction {prediction.get('id')} did not finish within {self.timeout_seconds:g}s"
                )
            self.sleep(self.poll_interval_seconds)
            prediction = self._request("GET", f"/predictions/{prediction['id']}")

        if prediction["status"] != "succeeded":
            raise CollaboratorError(SERVICE, f"Prediction {prediction['status']}: {prediction.get('error')}")

        output = prediction.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not output:
            raise CollaboratorError(SERVICE, "Prediction succeeded without an output image")

        logger.info("HD upscale complete", prediction_id=prediction.get("id"))
        return output
