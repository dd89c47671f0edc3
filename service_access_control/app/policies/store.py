"""
Policy store for the Access Control Service.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from shared.errors import MalformedInputError, NotFoundError, RecordDecodeError
from shared.logging import get_logger

from ..ledger import LedgerTransaction, canonicalize, decode_record
from .index import DeviceIndexMaintainer
from .listing import FullScanPolicyLister, PolicyLister
from .models import Policy, validation_errors


class PolicyStore:
    """CRUD over policy records, keeping device indexes in step."""

    def __init__(self,
                 index: DeviceIndexMaintainer,
                 lister: Optional[PolicyLister] = None,
                 key_prefix: str = "policy_",
                 reindex_on_update: bool = False):
        self.logger = get_logger("access_control.policy_store")
        self.index = index
        self.lister = lister or FullScanPolicyLister()
        self.key_prefix = key_prefix
        self.reindex_on_update = reindex_on_update

    def key_for(self, policy_id: str) -> str:
        return f"{self.key_prefix}{policy_id}"

    def read_raw(self, tx: LedgerTransaction, policy_id: str) -> Optional[bytes]:
        raw = tx.get(self.key_for(policy_id))
        return raw or None

    def load(self, tx: LedgerTransaction, policy_id: str) -> Optional[Policy]:
        """Load and validate a stored policy; None when absent."""
        raw = self.read_raw(tx, policy_id)
        if raw is None:
            return None

        try:
            return Policy.from_record(decode_record(raw))
        except (RecordDecodeError, ValidationError) as e:
            raise RecordDecodeError(
                f"Policy {policy_id} record is malformed",
                {"policy_id": policy_id, "error": str(e)}
            ) from e

    def save(self, tx: LedgerTransaction, policy: Policy) -> None:
        tx.put(self.key_for(policy.policy_id), canonicalize(policy.to_record()))

    def create(self, tx: LedgerTransaction, policy: Policy) -> List[str]:
        """Write the policy, overwriting any previous one, and index its devices."""
        self.save(tx, policy)
        found = self.index.attach(tx, policy.policy_id, policy.objects_list)

        self.logger.info(
            "Policy created",
            policy_id=policy.policy_id,
            objects=len(policy.objects_list),
            devices_found=len(found)
        )
        return found

    def read(self, tx: LedgerTransaction, policy_id: str) -> str:
        """Return the stored canonical text of a policy."""
        raw = self.read_raw(tx, policy_id)
        if raw is None:
            raise NotFoundError(f"Policy {policy_id} does not exist.", {"policy_id": policy_id})
        return raw.decode("utf-8")

    def list_all(self, tx: LedgerTransaction) -> List[Policy]:
        return self.lister.list_policies(tx)

    def update(self, tx: LedgerTransaction, policy_id: str, changes: Dict[str, Any]) -> Policy:
        """Overwrite existing attributes of a stored policy."""
        current = self.load(tx, policy_id)
        if current is None:
            raise NotFoundError(f"Policy {policy_id} not found.", {"policy_id": policy_id})

        record = current.to_record()
        applied = [key for key in changes if key in record and key != "PolicyID"]
        record.update({key: changes[key] for key in applied})

        try:
            updated = Policy.from_record(record)
        except ValidationError as e:
            raise MalformedInputError(
                f"Update for policy {policy_id} is invalid",
                {"policy_id": policy_id, "errors": validation_errors(e)}
            ) from e

        self.save(tx, updated)

        if self.reindex_on_update and updated.objects_list != current.objects_list:
            dropped = [oid for oid in current.objects_list if oid not in updated.objects_list]
            added = [oid for oid in updated.objects_list if oid not in current.objects_list]
            self.index.detach(tx, policy_id, dropped)
            self.index.attach(tx, policy_id, added)

        self.logger.info("Policy updated", policy_id=policy_id, fields=applied)
        return updated

    def load_objects_list(self, tx: LedgerTransaction, policy_id: str) -> Optional[List[str]]:
        """Read only the ObjectsList of a stored policy; None when absent."""
        raw = self.read_raw(tx, policy_id)
        if raw is None:
            return None

        record = decode_record(raw)
        objects = record.get("ObjectsList", []) if isinstance(record, dict) else None
        if not isinstance(objects, list) or not all(isinstance(oid, str) for oid in objects):
            raise RecordDecodeError(
                f"Policy {policy_id} record is malformed",
                {"policy_id": policy_id, "error": "ObjectsList is not a list of object identifiers"}
            )
        return objects

    def revoke(self, tx: LedgerTransaction, policy_id: str) -> List[str]:
        """Detach the policy from its devices and delete it."""
        objects = self.load_objects_list(tx, policy_id)
        if objects is None:
            raise NotFoundError(f"Policy {policy_id} not found.", {"policy_id": policy_id})

        self.index.detach(tx, policy_id, objects)
        tx.delete(self.key_for(policy_id))

        self.logger.info("Policy revoked", policy_id=policy_id, objects=len(objects))
        return objects
