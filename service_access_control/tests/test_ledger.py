"""
Unit tests for the canonical encoder and the in-memory ledger host.
"""

import pytest

from shared.errors import RecordDecodeError, TransactionConflictError
from shared.logging import invocation_id_var
from shared.metrics import get_metrics_collector
from shared.retry import RetryConfig
from service_access_control.app.ledger import InMemoryLedger, canonicalize, decode_record
from service_access_control.app.policies.models import Policy


class TestCanonicalEncoding:
    """Test cases for canonical record encoding."""

    def test_key_order_does_not_change_bytes(self):
        """Test that insertion order never reaches the ledger."""
        first = {"b": 1, "a": {"y": [1, 2], "x": "é"}}
        second = {"a": {"x": "é", "y": [1, 2]}, "b": 1}

        assert canonicalize(first) == canonicalize(second)
        assert canonicalize(first) == '{"a":{"x":"é","y":[1,2]},"b":1}'.encode("utf-8")

    def test_models_encode_with_ledger_field_names(self):
        """Test that pydantic records are written under their aliases."""
        policy = Policy.model_validate({"PolicyID": "P1", "ObjectsList": ["D1"]})

        decoded = decode_record(canonicalize(policy))

        assert decoded["PolicyID"] == "P1"
        assert decoded["ObjectsList"] == ["D1"]
        assert "policy_id" not in decoded

    def test_decode_rejects_garbage(self):
        """Test that undecodable bytes raise RecordDecodeError."""
        with pytest.raises(RecordDecodeError):
            decode_record(b"\xff\xfe not json")

        with pytest.raises(RecordDecodeError):
            decode_record(b"{unterminated")


class TestInMemoryLedger:
    """Test cases for InMemoryLedger."""

    @pytest.fixture
    def ledger(self):
        """Create InMemoryLedger instance."""
        return InMemoryLedger(retry_config=RetryConfig(max_attempts=3, base_delay=0.0, jitter=False))

    def test_commit_on_success(self, ledger):
        """Test that staged writes become visible after the invocation."""
        with ledger.transaction() as tx:
            tx.put("a", b"1")
            assert ledger.get_committed("a") is None

        assert ledger.get_committed("a") == b"1"

    def test_failure_discards_all_writes(self, ledger):
        """Test that an exception leaves committed state untouched."""
        with ledger.transaction() as tx:
            tx.put("a", b"1")

        with pytest.raises(RuntimeError):
            with ledger.transaction() as tx:
                tx.put("a", b"2")
                tx.put("b", b"3")
                tx.delete("a")
                raise RuntimeError("abort")

        assert ledger.get_committed("a") == b"1"
        assert ledger.get_committed("b") is None

    def test_read_your_writes(self, ledger):
        """Test that an invocation sees its own staged writes and deletes."""
        with ledger.transaction() as tx:
            tx.put("a", b"1")

        with ledger.transaction() as tx:
            tx.put("b", b"2")
            tx.delete("a")
            assert tx.get("b") == b"2"
            assert tx.get("a") is None
            assert list(tx.scan("", "")) == [("b", b"2")]

    def test_scan_bounds(self, ledger):
        """Test ordered scans with inclusive start and exclusive end."""
        with ledger.transaction() as tx:
            for key in ["policy_b", "D1", "policy_a", "policy`", "policyz"]:
                tx.put(key, key.encode())

        with ledger.transaction() as tx:
            assert [k for k, _ in tx.scan("", "")] == ["D1", "policy_a", "policy_b", "policy`", "policyz"]
            assert [k for k, _ in tx.scan("policy_", "policy`")] == ["policy_a", "policy_b"]
            assert [k for k, _ in tx.scan("policy_b", "")] == ["policy_b", "policy`", "policyz"]

    def test_stale_read_rejected_at_commit(self, ledger):
        """Test optimistic concurrency validation of point reads."""
        with ledger.transaction() as tx:
            tx.put("k", b"0")

        with pytest.raises(TransactionConflictError):
            with ledger.transaction() as tx:
                tx.get("k")
                with ledger.transaction() as other:
                    other.put("k", b"other")
                tx.put("k", b"mine")

        assert ledger.get_committed("k") == b"other"

    def test_read_of_absent_key_conflicts_with_its_creation(self, ledger):
        """Test that reading a missing key still records a version."""
        with pytest.raises(TransactionConflictError):
            with ledger.transaction() as tx:
                assert tx.get("new") is None
                with ledger.transaction() as other:
                    other.put("new", b"1")
                tx.put("derived", b"x")

        assert ledger.get_committed("derived") is None

    def test_submit_retries_conflicts(self, ledger):
        """Test that submit re-runs an invocation rejected at commit."""
        attempts = []

        def op(tx):
            tx.get("k")
            attempts.append(1)
            if len(attempts) == 1:
                with ledger.transaction() as other:
                    other.put("k", b"interleaved")
            tx.put("k", b"mine")
            return len(attempts)

        assert ledger.submit(op) == 2
        assert ledger.get_committed("k") == b"mine"

    def test_submit_gives_up_after_max_attempts(self, ledger):
        """Test that exhausted retries surface the conflict itself."""
        def op(tx):
            tx.get("k")
            with ledger.transaction() as other:
                other.put("k", b"always")
            tx.put("k", b"never")

        with pytest.raises(TransactionConflictError):
            ledger.submit(op)

        assert ledger.get_committed("k") == b"always"

    def test_conflicts_are_counted(self):
        """Test that rejected commits reach the metrics collector."""
        metrics = get_metrics_collector("access_control")
        ledger = InMemoryLedger(
            retry_config=RetryConfig(max_attempts=1, base_delay=0.0, jitter=False),
            metrics=metrics
        )

        def op(tx):
            tx.get("k")
            with ledger.transaction() as other:
                other.put("k", b"x")

        with pytest.raises(TransactionConflictError):
            ledger.submit(op)

        assert metrics.registry.get_sample_value("ledger_commit_conflicts_total") == 1.0

    def test_submit_does_not_retry_other_errors(self, ledger):
        """Test that contract failures are raised on the first attempt."""
        calls = []

        def op(tx):
            calls.append(1)
            raise ValueError("contract failure")

        with pytest.raises(ValueError):
            ledger.submit(op)

        assert len(calls) == 1

    def test_invocation_id_is_scoped_to_the_invocation(self, ledger):
        """Test that log correlation ends with the invocation."""
        with ledger.transaction() as outer:
            assert invocation_id_var.get() == outer.invocation_id
            with ledger.transaction() as inner:
                assert invocation_id_var.get() == inner.invocation_id
            assert invocation_id_var.get() == outer.invocation_id

        assert invocation_id_var.get() is None

        with pytest.raises(RuntimeError):
            with ledger.transaction():
                raise RuntimeError("abort")

        assert invocation_id_var.get() is None
