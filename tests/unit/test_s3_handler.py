# tests/unit/test_s3_handler.py
# ------------------------------------------------------------
# Purpose: Unit tests for monthly_uploader/cloud/s3_handler.py
#          Key layout, dry run vs. live upload. S3 calls are
#          checked with botocore's Stubber (no network).
# ------------------------------------------------------------

from unittest import mock

import pytest
from botocore.stub import Stubber

from monthly_uploader.cloud.s3_handler import UploadPlanner, build_s3_key, create_s3_client
from monthly_uploader.errors import S3UploadError, UploaderConfigError
from monthly_uploader.models import UploadOutcome

BUCKET = "ryze-data-brand-performance"
KEY = "AutomationDiscrepancy/2025/11/42/abc_3000_Translated.csv"


def _outcome():
    return UploadOutcome(
        type="Translated",
        io_id="abc",
        script_id="3000",
        brand_group_id=42,
        brand_group_name="Acme Group",
        rows_input=3,
        rows_after_dedup=2,
        duplicates_removed=1,
        size_kb=0.01,
    )


def test_key_layout():
    assert build_s3_key("2025", "11", 42, "abc", "3000", "Translated") == KEY
    # Sentinel brand groups still produce a deterministic key
    assert (
        build_s3_key("2025", "01", "NotFoundBrandGroupID", "x", "9", "Processed")
        == "AutomationDiscrepancy/2025/01/NotFoundBrandGroupID/x_9_Processed.csv"
    )


def test_dry_run_never_calls_s3():
    client = mock.Mock()
    outcome = UploadPlanner(client, BUCKET, dry_run=True).publish(_outcome(), KEY, "a\n1")
    client.put_object.assert_not_called()
    assert outcome.would_upload_to == KEY
    assert outcome.dry_run is True
    assert outcome.upload_success is False
    assert outcome.path is None


def test_dry_run_without_client_is_allowed():
    assert UploadPlanner(None, BUCKET, dry_run=True).dry_run is True


def test_live_mode_requires_a_client():
    with pytest.raises(UploaderConfigError):
        UploadPlanner(None, BUCKET, dry_run=False)


def test_live_upload_puts_csv_and_fills_locations(s3_client):
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {"ETag": '"abc123"'},
            expected_params={
                "Bucket": BUCKET,
                "Key": KEY,
                "Body": "a,b\n1,2".encode("utf-8"),
                "ContentType": "text/csv",
            },
        )
        outcome = UploadPlanner(s3_client, BUCKET).publish(_outcome(), KEY, "a,b\n1,2")
        stubber.assert_no_pending_responses()

    assert outcome.upload_success is True
    assert outcome.path == KEY
    assert outcome.s3_url == f"s3://{BUCKET}/{KEY}"
    assert outcome.console_url == f"https://s3.console.aws.amazon.com/s3/object/{BUCKET}?prefix={KEY}"
    assert outcome.upload_duration_ms >= 0
    assert outcome.dry_run is None


def test_upload_failure_raises_s3_upload_error(s3_client):
    with Stubber(s3_client) as stubber:
        stubber.add_client_error(
            "put_object",
            service_error_code="AccessDenied",
            service_message="Access Denied",
            http_status_code=403,
        )
        outcome = _outcome()
        with pytest.raises(S3UploadError) as excinfo:
            UploadPlanner(s3_client, BUCKET).publish(outcome, KEY, "a\n1")

    assert str(excinfo.value).startswith("S3 Upload Error: ")
    assert "AccessDenied" in str(excinfo.value)
    assert outcome.upload_success is False


def test_create_s3_client_uses_config_region():
    cfg = {
        "aws": {
            "access_key_id": "AKIAEXAMPLE",
            "secret_access_key": "secret",
            "region": "eu-west-1",
            "max_attempts": 4,
        }
    }
    client = create_s3_client(cfg)
    assert client.meta.region_name == "eu-west-1"
