import re
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from monthly_uploader.errors import UploaderConfigError
from monthly_uploader.models import UPLOAD_TYPES

_YEAR_MONTH = re.compile(r"^(\d{4})/(\d{2})$")


# --- Helper functions for validation ---


def is_valid_year_month(value):
    """Check a YYYY/MM override, month 01-12."""
    match = _YEAR_MONTH.match(value or "")
    return match is not None and 1 <= int(match.group(2)) <= 12


def previous_month(now: Optional[datetime] = None) -> Tuple[str, str]:
    """Year and zero-padded month of the calendar month before `now`."""
    now = now or datetime.now()
    first = date(now.year, now.month, 1)
    if first.month == 1:
        return str(first.year - 1), "12"
    return str(first.year), f"{first.month - 1:02d}"


def parse_year_month(override: Optional[str], now: Optional[datetime] = None) -> Tuple[str, str]:
    """Use the YYYY/MM override when given, otherwise the previous month."""
    if not override or not override.strip():
        return previous_month(now)
    override = override.strip()
    if not is_valid_year_month(override):
        raise UploaderConfigError(
            f"Invalid Year/Month Override '{override}': expected YYYY/MM, e.g. 2025/11"
        )
    year, month = override.split("/")
    return year, month


# --- Main validation function ---
def validate_params(params: Dict[str, Any]) -> None:
    upload_type = params.get("upload_type")
    if upload_type not in UPLOAD_TYPES:
        raise UploaderConfigError(
            f"Invalid upload type '{upload_type}': expected one of {', '.join(UPLOAD_TYPES)}"
        )

    if not str(params.get("script_id") or "").strip():
        raise UploaderConfigError("Script ID is required.")

    parse_year_month(params.get("year_month_override"))
