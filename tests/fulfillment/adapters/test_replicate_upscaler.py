import json

import httpx
import pytest

from fulfillment.errors import (
    CollaboratorError,
    GenerationTimeoutError,
    QuotaExceededError,
    RateLimitedError,
)
from fulfillment.imaging.replicate_adapter import REAL_ESRGAN_VERSION, ReplicateUpscaler
from fulfillment.pipeline.retry import RetryPolicy


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class ReplicateStub:
    """Scripted Replicate API: one response per request, in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        status, body, headers = self.responses.pop(0)
        return httpx.Response(status, json=body, headers=headers or {})


def upscaler(stub, clock, retry_sleeps=None, timeout_seconds=120):
    return ReplicateUpscaler(
        api_token="r8_test",
        base_url="https://replicate.test/v1",
        timeout_seconds=timeout_seconds,
        poll_interval_seconds=3,
        retry_policy=RetryPolicy(sleep=(retry_sleeps if retry_sleeps is not None else []).append),
        transport=httpx.MockTransport(stub),
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture()
def clock():
    return FakeClock()


def test_polls_until_prediction_succeeds(clock):
    stub = ReplicateStub(
        (201, {"id": "p1", "status": "starting"}, None),
        (200, {"id": "p1", "status": "processing"}, None),
        (200, {"id": "p1", "status": "succeeded", "output": "https://replicate.delivery/p1/out.png"}, None),
    )

    url = upscaler(stub, clock).generate_hd("https://previews.test/1.png", "watercolour", "a dragon")

    assert url == "https://replicate.delivery/p1/out.png"
    create = stub.requests[0]
    assert create.method == "POST"
    assert create.url.path == "/v1/predictions"
    assert create.headers["Authorization"] == "Bearer r8_test"
    assert json.loads(create.content) == {
        "version": REAL_ESRGAN_VERSION,
        "input": {"image": "https://previews.test/1.png", "scale": 4, "face_enhance": False},
    }
    assert [r.url.path for r in stub.requests[1:]] == ["/v1/predictions/p1", "/v1/predictions/p1"]
    assert clock.sleeps == [3, 3]


def test_list_output_takes_first_image(clock):
    stub = ReplicateStub((201, {"id": "p2", "status": "succeeded", "output": ["https://a.png", "https://b.png"]}, None))
    assert upscaler(stub, clock).generate_hd("https://previews.test/2.png", None, None) == "https://a.png"


def test_insufficient_credits_is_not_retried(clock):
    stub = ReplicateStub((402, {"detail": "You have insufficient credit"}, None))
    retry_sleeps = []

    with pytest.raises(QuotaExceededError):
        upscaler(stub, clock, retry_sleeps).generate_hd("https://previews.test/3.png", None, None)
    assert len(stub.requests) == 1
    assert retry_sleeps == []


def test_rate_limit_waits_retry_after(clock):
    stub = ReplicateStub(
        (429, {"detail": "throttled"}, {"Retry-After": "2"}),
        (201, {"id": "p4", "status": "succeeded", "output": "https://out.png"}, None),
    )
    retry_sleeps = []

    assert upscaler(stub, clock, retry_sleeps).generate_hd("https://previews.test/4.png", None, None) == "https://out.png"
    assert retry_sleeps == [3.0]


def test_rate_limit_exhausts_retries(clock):
    stub = ReplicateStub(*[(429, {"detail": "throttled", "retry_after": 1}, None)] * 3)
    with pytest.raises(RateLimitedError):
        upscaler(stub, clock).generate_hd("https://previews.test/5.png", None, None)
    assert len(stub.requests) == 3


def test_deadline_raises_generation_timeout(clock):
    stub = ReplicateStub(
        (201, {"id": "p6", "status": "starting"}, None),
        *[(200, {"id": "p6", "status": "processing"}, None)] * 10,
    )

    with pytest.raises(GenerationTimeoutError, match="p6"):
        upscaler(stub, clock, timeout_seconds=9).generate_hd("https://previews.test/6.png", None, None)
    assert clock.now >= 9


def test_failed_prediction(clock):
    stub = ReplicateStub((201, {"id": "p7", "status": "failed", "error": "CUDA out of memory"}, None))
    with pytest.raises(CollaboratorError, match="CUDA out of memory"):
        upscaler(stub, clock).generate_hd("https://previews.test/7.png", None, None)


def test_missing_token_is_reported():
    assert ReplicateUpscaler(api_token="").missing_configuration() == ["REPLICATE_API_TOKEN"]
