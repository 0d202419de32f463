# =========================================
# File: monthly_uploader/models.py
# Purpose: Value types shared by the monthly upload pipeline
# - BrandGroup + the "not found" sentinel
# - Resolved / Unresolved brand-group lookup results
# - Explicit / discovered identifier modes
# - UploadOutcome (one entry of the report's "uploads" list)
# =========================================

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Union

Record = Dict[str, Any]  # One input row, field order preserved

UPLOAD_TYPE_TRANSLATED = "Translated"  # Single IO ID passed as parameter
UPLOAD_TYPE_PROCESSED = "Processed"  # IO IDs auto-detected from records
UPLOAD_TYPES = (UPLOAD_TYPE_TRANSLATED, UPLOAD_TYPE_PROCESSED)

IO_ID_FIELD = "io_id"


@dataclass(frozen=True)
class BrandGroup:
    id: Union[int, str]
    name: str


NOT_FOUND_BRAND_GROUP = BrandGroup(id="NotFoundBrandGroupID", name="Unknown Brand")


@dataclass(frozen=True)
class Resolved:
    """Lookup found a brand group for the identifier."""

    brand_group: BrandGroup

    @property
    def error(self) -> None:
        return None


@dataclass(frozen=True)
class Unresolved:
    """Lookup failed or missed; reason goes to the report's error mapping."""

    reason: str

    @property
    def brand_group(self) -> BrandGroup:
        return NOT_FOUND_BRAND_GROUP

    @property
    def error(self) -> str:
        return self.reason


BrandGroupResolution = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class ExplicitIdentifier:
    """Every input record belongs to one IO ID given as a parameter."""

    io_id: str

    def identifiers(self, records: List[Record]) -> List[str]:
        return [self.io_id] if self.io_id and self.io_id.strip() else []

    def select(self, records: List[Record], identifier: str) -> List[Record]:
        return list(records)


@dataclass(frozen=True)
class DiscoveredIdentifiers:
    """IO IDs are the distinct values of a record field, in order of first appearance."""

    field_name: str = IO_ID_FIELD

    def identifiers(self, records: List[Record]) -> List[str]:
        values = [r.get(self.field_name) for r in records]
        return list(dict.fromkeys(str(v) for v in values if v))

    def select(self, records: List[Record], identifier: str) -> List[Record]:
        return [
            r
            for r in records
            if r.get(self.field_name) and str(r[self.field_name]) == identifier
        ]


IdentifierMode = Union[ExplicitIdentifier, DiscoveredIdentifiers]


@dataclass
class UploadOutcome:
    """Per-identifier result; optional fields are left out of the JSON when unset."""

    type: str
    io_id: str
    script_id: str
    brand_group_id: Union[int, str]
    brand_group_name: str
    rows_input: int
    rows_after_dedup: int
    duplicates_removed: int
    size_kb: float
    upload_success: bool = False
    path: Optional[str] = None
    would_upload_to: Optional[str] = None
    s3_url: Optional[str] = None
    console_url: Optional[str] = None
    upload_duration_ms: Optional[int] = None
    dry_run: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[f.name] = value
        return out
