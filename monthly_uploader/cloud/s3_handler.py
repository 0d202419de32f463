"""
S3 Integration — Discrepancy CSV Uploader
-----------------------------------------
- Builds deterministic object keys:
  AutomationDiscrepancy/<year>/<month>/<brand_group_id>/<io_id>_<script_id>_<upload_type>.csv
- Dry run records the key it would write and never touches S3.
- Live mode does a single put_object; retries are left to botocore's retry config.
  Any failure is fatal for the run (S3UploadError).
"""

import logging
import time
from typing import Any, Dict

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config.config_loader import DEFAULT_MAX_ATTEMPTS
from monthly_uploader.errors import S3UploadError, UploaderConfigError
from monthly_uploader.models import UploadOutcome

log = logging.getLogger(__name__)

# -----------------------
# Constants
# -----------------------
BASE_PREFIX = "AutomationDiscrepancy"
CONTENT_TYPE = "text/csv"
CONSOLE_URL = "https://s3.console.aws.amazon.com/s3/object/{bucket}?prefix={key}"


def create_s3_client(cfg: Dict[str, Any]):
    """
    Create an S3 client from the aws section of the config
    (access_key_id, secret_access_key, region).
    """
    aws = cfg["aws"]
    retries = {"max_attempts": int(aws.get("max_attempts", DEFAULT_MAX_ATTEMPTS)), "mode": "standard"}
    return boto3.client(
        "s3",
        aws_access_key_id=aws["access_key_id"],
        aws_secret_access_key=aws["secret_access_key"],
        region_name=aws["region"],
        config=Config(retries=retries),
    )


def build_s3_key(year, month, brand_group_id, io_id: str, script_id: str, upload_type: str) -> str:
    """AutomationDiscrepancy/YYYY/MM/<brand_group_id>/<io_id>_<script_id>_<upload_type>.csv"""
    file_name = f"{io_id}_{script_id}_{upload_type}.csv"
    return f"{BASE_PREFIX}/{year}/{month}/{brand_group_id}/{file_name}"


class UploadPlanner:
    """Decides dry run vs. real upload and fills the outcome's destination fields."""

    def __init__(self, s3_client, bucket: str, dry_run: bool = False):
        if not dry_run and s3_client is None:
            raise UploaderConfigError("An S3 client is required unless dry_run is set.")
        self.s3 = s3_client
        self.bucket = bucket
        self.dry_run = dry_run

    def publish(self, outcome: UploadOutcome, key: str, csv_text: str) -> UploadOutcome:
        if self.dry_run:
            outcome.would_upload_to = key
            outcome.upload_success = False
            outcome.dry_run = True
            log.info(f"[dry run] would upload {outcome.rows_after_dedup} rows → s3://{self.bucket}/{key}")
            return outcome

        log.info(f"Uploading {outcome.rows_after_dedup} rows → s3://{self.bucket}/{key}")
        start = time.perf_counter()
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=csv_text.encode("utf-8"),
                ContentType=CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as e:
            outcome.upload_success = False
            raise S3UploadError(f"S3 Upload Error: {e}") from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        outcome.path = key
        outcome.s3_url = f"s3://{self.bucket}/{key}"
        outcome.console_url = CONSOLE_URL.format(bucket=self.bucket, key=key)
        outcome.upload_duration_ms = duration_ms
        outcome.upload_success = True
        return outcome
