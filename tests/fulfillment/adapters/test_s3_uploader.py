import boto3
import pytest
from botocore.config import Config
from botocore.stub import Stubber

from fulfillment.errors import CollaboratorError, TransientCollaboratorError
from fulfillment.pipeline.retry import RetryPolicy
from fulfillment.storage.s3_adapter import S3AssetUploader


@pytest.fixture()
def s3_client():
    return boto3.client(
        "s3",
        region_name="eu-north-1",
        aws_access_key_id="AKIATEST",
        aws_secret_access_key="secret",
        config=Config(signature_version="s3v4"),
    )


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def uploader(s3_client, sleeps):
    return S3AssetUploader(
        bucket="taletoprint-assets",
        region="eu-north-1",
        access_key_id="AKIATEST",
        secret_access_key="secret",
        url_ttl_seconds=3600,
        retry_policy=RetryPolicy(sleep=sleeps.append),
        client=s3_client,
    )


def test_upload_puts_object_and_signs_url(uploader, s3_client):
    expected_key = "print-assets/TTP-ABC/TTP-ABC_A3_print.png"
    with Stubber(s3_client) as stub:
        stub.add_response(
            "put_object",
            {},
            {"Bucket": "taletoprint-assets", "Key": expected_key, "Body": b"png", "ContentType": "image/png"},
        )
        result = uploader.upload(b"png", "TTP-ABC_A3_print.png", "TTP-ABC")
        stub.assert_no_pending_responses()

    assert result.key == expected_key
    assert expected_key in result.url
    assert "X-Amz-Expires=3600" in result.url


def test_slow_down_is_retried(uploader, s3_client, sleeps):
    with Stubber(s3_client) as stub:
        stub.add_client_error("put_object", service_error_code="SlowDown", http_status_code=503)
        stub.add_response("put_object", {})
        uploader.upload(b"png", "f.png", "TTP-RETRY")
        stub.assert_no_pending_responses()

    assert sleeps == [1.0]


def test_access_denied_is_permanent(uploader, s3_client, sleeps):
    with Stubber(s3_client) as stub:
        stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(CollaboratorError, match="AccessDenied") as exc:
            uploader.upload(b"png", "f.png", "TTP-DENIED")

    assert not isinstance(exc.value, TransientCollaboratorError)
    assert sleeps == []


def test_missing_configuration(s3_client):
    uploader = S3AssetUploader(bucket="", client=s3_client)
    assert uploader.missing_configuration() == ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_S3_BUCKET"]
