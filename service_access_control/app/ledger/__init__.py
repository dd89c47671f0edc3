"""
Ledger package.

The policy engine never talks to a concrete store directly. Every
operation receives a transaction handle implementing the port defined in
`port`, and every record it writes goes through the canonical encoder in
`codec` so that independently executing replicas produce identical bytes.

Modules of interest:
- port: The LedgerTransaction protocol (get/put/delete/scan).
- codec: Canonical record encoding and decoding.
- memory: An in-process reference host with snapshot reads, atomic
  commit and optimistic concurrency validation.
"""

from .codec import canonicalize, canonical_text, decode_record
from .memory import InMemoryLedger
from .port import LedgerTransaction

__all__ = [
    "canonicalize",
    "canonical_text",
    "decode_record",
    "InMemoryLedger",
    "LedgerTransaction",
]
