"""
Canonical record encoding for ledger writes.
"""

import json
from typing import Any, Union

from pydantic import BaseModel

from shared.errors import RecordDecodeError


def _plain(record: Any) -> Any:
    if isinstance(record, BaseModel):
        return record.model_dump(by_alias=True, mode="json")
    return record


def canonical_text(record: Any) -> str:
    """Serialize a record to text that does not depend on key insertion order."""
    return json.dumps(_plain(record), ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def canonicalize(record: Any) -> bytes:
    """Serialize a record to the exact bytes written to the ledger."""
    return canonical_text(record).encode("utf-8")


def decode_record(raw: Union[bytes, str]) -> Any:
    """Decode stored bytes back into plain Python structures."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        return json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise RecordDecodeError("Stored record is not valid JSON", {"error": str(e)}) from e
