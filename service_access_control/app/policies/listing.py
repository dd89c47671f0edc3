"""
Policy listing strategies.

The ledger has no secondary index over policies, so listing is a scan.
FullScanPolicyLister walks the entire namespace and keeps anything
shaped like a policy, matching what earlier deployments returned.
PrefixScanPolicyLister only walks the policy key range and can replace
it once every policy is known to live under the policy prefix.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Tuple

from pydantic import ValidationError

from shared.errors import RecordDecodeError
from shared.logging import get_logger

from ..ledger import LedgerTransaction, decode_record
from .models import Policy


class PolicyLister(ABC):
    """Lists every policy visible to an invocation."""

    def __init__(self):
        self.logger = get_logger("access_control.policy_listing")

    @abstractmethod
    def list_policies(self, tx: LedgerTransaction) -> List[Policy]:
        ...

    def _collect(self, entries: Iterable[Tuple[str, bytes]]) -> List[Policy]:
        policies = []
        for key, raw in entries:
            try:
                record = decode_record(raw)
            except RecordDecodeError as e:
                self.logger.warning("Record decode warning", key=key, error=e.details.get("error"))
                continue

            if not isinstance(record, dict) or not record.get("PolicyID"):
                continue

            try:
                policies.append(Policy.from_record(record))
            except ValidationError as e:
                self.logger.warning(
                    "Record decode warning",
                    key=key,
                    error=f"policy failed validation: {e.error_count()} error(s)"
                )

        return policies


class FullScanPolicyLister(PolicyLister):
    """Scan the whole namespace and filter by record shape."""

    def list_policies(self, tx: LedgerTransaction) -> List[Policy]:
        return self._collect(tx.scan("", ""))


class PrefixScanPolicyLister(PolicyLister):
    """Scan only keys under the policy prefix."""

    def __init__(self, key_prefix: str = "policy_"):
        super().__init__()
        if not key_prefix:
            raise ValueError("key_prefix must be non-empty")
        self.key_prefix = key_prefix

    def list_policies(self, tx: LedgerTransaction) -> List[Policy]:
        # Smallest key greater than every key starting with the prefix
        end_key = self.key_prefix[:-1] + chr(ord(self.key_prefix[-1]) + 1)
        return self._collect(tx.scan(self.key_prefix, end_key))


def build_policy_lister(strategy: str, key_prefix: str = "policy_") -> PolicyLister:
    """Create the lister named by configuration."""
    if strategy == "full_scan":
        return FullScanPolicyLister()
    if strategy == "prefix":
        return PrefixScanPolicyLister(key_prefix)
    raise ValueError(f"Unknown policy listing strategy: {strategy}")
