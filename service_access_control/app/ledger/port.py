"""
Ledger access port consumed by the policy engine.
"""

from typing import Iterator, Optional, Protocol, Tuple


class LedgerTransaction(Protocol):
    """Transaction-scoped handle onto the ledger key space.

    Everything done through one handle belongs to a single invocation:
    the host commits it atomically when the invocation returns and
    discards it when the invocation raises. Reads observe the snapshot
    the invocation started from plus its own staged writes.
    """

    def get(self, key: str) -> Optional[bytes]:
        """Point lookup; None when the key is absent."""
        ...

    def put(self, key: str, value: bytes) -> None:
        """Stage a write."""
        ...

    def delete(self, key: str) -> None:
        """Stage a delete."""
        ...

    def scan(self, start_key: str, end_key: str) -> Iterator[Tuple[str, bytes]]:
        """Ordered range scan over [start_key, end_key).

        Empty bounds are open, so scan("", "") walks the whole namespace.
        """
        ...
