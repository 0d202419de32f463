"""
Uploader exceptions
-------------------
- UploaderConfigError: bad parameters/config, raised before any I/O
- CsvEncodingError: strict CSV mode found a record with a different field set
- S3UploadError: object-store write failed, fatal for the whole run
"""


class UploaderError(Exception):
    """Base exception for all uploader failures."""


class UploaderConfigError(UploaderError):
    """Raised for invalid parameters or configuration."""


class CsvEncodingError(UploaderError):
    """Raised when strict CSV encoding meets non-homogeneous records."""


class S3UploadError(UploaderError):
    """Raised when writing a CSV to S3 fails."""
