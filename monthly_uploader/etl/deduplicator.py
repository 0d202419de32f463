# =========================================
# File: monthly_uploader/etl/deduplicator.py
# Purpose: Remove exact duplicate records before CSV export
# - Two records are duplicates when their JSON forms (top-level keys sorted) match
# - First occurrence wins, kept records keep their original field order
# =========================================

import json  # Canonical serialization for comparison
from dataclasses import dataclass
from typing import List

import pandas as pd  # duplicated(keep="first") does the membership test

from monthly_uploader.models import Record


@dataclass
class DeduplicationResult:
    unique: List[Record]
    duplicates_removed: int


def canonical_form(record: Record) -> str:
    """
    Serialize a record with its top-level keys sorted and no whitespace variance.
    Nested mappings keep their own key order. Values that JSON cannot encode
    natively (dates, decimals) fall back to str().
    """
    return json.dumps(
        {key: record[key] for key in sorted(record)},  # Field order must not affect equality
        separators=(",", ":"),  # Compact, stable output
        ensure_ascii=False,
        default=str,
    )


def dedup(records: List[Record]) -> DeduplicationResult:
    """
    Deduplicate by complete record content.
    Returns the kept records (original objects, original order) and the number dropped.
    """
    records = list(records)
    if not records:
        return DeduplicationResult(unique=[], duplicates_removed=0)

    keys = pd.Series([canonical_form(r) for r in records], dtype=object)
    keep_mask = ~keys.duplicated(keep="first")  # True for first sighting of each form

    unique = [r for r, keep in zip(records, keep_mask.tolist()) if keep]
    return DeduplicationResult(
        unique=unique,
        duplicates_removed=len(records) - len(unique),
    )
