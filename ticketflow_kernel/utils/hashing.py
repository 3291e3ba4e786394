"""
Checksums for workflow documents.

A definition loaded from a YAML file, a JSON column or an API body must
hash the same, so the payload is serialized canonically first: sorted
keys, compact separators, UTF-8, and a fixed rendering for the few
non-JSON types a parsed document can hold.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID


def _canonical_value(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    raise TypeError(f"Cannot hash value of type {type(obj).__name__}")


def canonical_json(payload: Any) -> str:
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_canonical_value,
    )


def hash_payload(payload: Any) -> str:
    """SHA-256 hex digest of ``canonical_json(payload)``."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
