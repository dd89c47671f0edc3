"""
In-process reference ledger host.

Gives the policy engine the transactional contract it expects from a real
ledger: snapshot reads, read-your-writes inside an invocation, atomic
commit on success, discard on failure, and optimistic concurrency
validation of point reads at commit time.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from shared.errors import TransactionConflictError
from shared.logging import get_logger, invocation_context
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception

# Staged deletes are recorded as None
_DELETED = None


class _Transaction:
    """Write-staging view over a snapshot of the ledger."""

    def __init__(self, snapshot: Dict[str, bytes], versions: Dict[str, int], invocation_id: str):
        self.invocation_id = invocation_id
        self._snapshot = snapshot
        self._versions = versions
        self.read_set: Dict[str, int] = {}
        self.writes: Dict[str, Optional[bytes]] = {}

    def get(self, key: str) -> Optional[bytes]:
        if key in self.writes:
            return self.writes[key]
        self.read_set.setdefault(key, self._versions.get(key, 0))
        return self._snapshot.get(key)

    def put(self, key: str, value: bytes) -> None:
        if not key:
            raise ValueError("Ledger keys must be non-empty")
        self.writes[key] = bytes(value)

    def delete(self, key: str) -> None:
        self.writes[key] = _DELETED

    def scan(self, start_key: str, end_key: str) -> Iterator[Tuple[str, bytes]]:
        view = dict(self._snapshot)
        for key, value in self.writes.items():
            if value is _DELETED:
                view.pop(key, None)
            else:
                view[key] = value

        for key in sorted(view):
            if start_key and key < start_key:
                continue
            if end_key and key >= end_key:
                break
            yield key, view[key]


class InMemoryLedger:
    """Dictionary-backed ledger with per-key commit versions."""

    def __init__(self, retry_config: Optional[RetryConfig] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("access_control.ledger")
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=0.05)
        self.metrics = metrics
        self._data: Dict[str, bytes] = {}
        self._versions: Dict[str, int] = {}
        self._commit_seq = 0
        self._lock = threading.Lock()

    @contextmanager
    def transaction(self) -> Iterator[_Transaction]:
        """Open one invocation; commit on normal exit, discard on error."""
        with invocation_context() as invocation_id:
            with self._lock:
                tx = _Transaction(dict(self._data), dict(self._versions), invocation_id)

            try:
                yield tx
            except Exception:
                self.logger.debug(
                    "Invocation failed, staged writes discarded",
                    invocation_id=tx.invocation_id,
                    staged=len(tx.writes)
                )
                raise

            self._commit(tx)

    def _commit(self, tx: _Transaction) -> None:
        with self._lock:
            stale = [
                key for key, version in tx.read_set.items()
                if self._versions.get(key, 0) != version
            ]
            if stale:
                if self.metrics:
                    self.metrics.increment_counter("ledger_commit_conflicts_total")
                self.logger.warning(
                    "Commit rejected, read set is stale",
                    invocation_id=tx.invocation_id,
                    keys=stale
                )
                raise TransactionConflictError(
                    "Ledger state changed during invocation",
                    {"keys": stale}
                )

            if not tx.writes:
                return

            self._commit_seq += 1
            for key, value in tx.writes.items():
                if value is _DELETED:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value
                self._versions[key] = self._commit_seq

        self.logger.debug(
            "Invocation committed",
            invocation_id=tx.invocation_id,
            writes=len(tx.writes),
            commit_seq=self._commit_seq
        )

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run fn(tx, *args) as one invocation, re-running it on commit conflicts."""

        @retry_on_exception((TransactionConflictError,), self.retry_config)
        def invoke():
            with self.transaction() as tx:
                return fn(tx, *args, **kwargs)

        try:
            return invoke()
        except RetryError as e:
            raise e.last_exception from e

    def keys(self) -> List[str]:
        """Committed keys in ledger order."""
        with self._lock:
            return sorted(self._data)

    def get_committed(self, key: str) -> Optional[bytes]:
        """Read committed state outside any invocation."""
        with self._lock:
            return self._data.get(key)
