"""
Access control contract.

The operations a transaction-submission caller invokes. Each one takes
the invocation's transaction handle followed by the caller's string or
JSON-text arguments, parses those into typed values before touching the
ledger, and returns a text payload.
"""

import json
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from shared.config import AccessControlSettings
from shared.errors import MalformedInputError
from shared.logging import get_logger

from .ledger import LedgerTransaction, canonical_text
from .policies import (
    AccessRequest, AccessValidator, DeviceIndexMaintainer, Policy, PolicyStore,
    PolicyUpdate, build_policy_lister,
)
from .policies.models import validation_errors


def _parse_json(text: Any, argument: str) -> Any:
    if not isinstance(text, (str, bytes)):
        return text
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedInputError(f"{argument} is not valid JSON", {"argument": argument, "error": str(e)}) from e


def _require_id(value: Any, argument: str) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedInputError(f"{argument} must be a non-empty string", {"argument": argument})
    return value


class AccessControlContract:
    """Policy lifecycle and access validation over an explicit ledger transaction."""

    def __init__(self, settings: Optional[AccessControlSettings] = None):
        self.settings = settings or AccessControlSettings()
        self.logger = get_logger("access_control.contract")

        self.index = DeviceIndexMaintainer()
        self.store = PolicyStore(
            self.index,
            build_policy_lister(self.settings.policy_listing, self.settings.policy_key_prefix),
            key_prefix=self.settings.policy_key_prefix,
            reindex_on_update=self.settings.reindex_on_update,
        )
        self.validator = AccessValidator(
            self.store,
            self.index,
            enforce_object_location=self.settings.enforce_object_location,
        )

    def create_policy(self, tx: LedgerTransaction, policy_id: str, objects_list: Union[str, List[str]],
                      role: str, access_hours: str, object_location: str, policy_expiration: str,
                      max_requests_per_hour: Union[str, int, None], notify_on_access: Union[str, bool],
                      user_location: str, allow_cloud_export: Union[str, bool]) -> str:
        """Store a policy and bind it to every existing device in objects_list."""
        record = {
            "PolicyID": _require_id(policy_id, "policyID"),
            "ObjectsList": _parse_json(objects_list, "objectsList"),
            "Role": role,
            "AccessHours": access_hours,
            "ObjectLocation": object_location,
            "PolicyExpiration": policy_expiration,
            "MaxRequestsPerHour": max_requests_per_hour,
            "NotifyOnAccess": notify_on_access,
            "UserLocation": user_location,
            "AllowCloudExport": allow_cloud_export,
        }
        try:
            policy = Policy.model_validate(record)
        except ValidationError as e:
            raise MalformedInputError(
                f"Policy {policy_id} is invalid",
                {"policy_id": policy_id, "errors": validation_errors(e)}
            ) from e

        self.store.create(tx, policy)
        return f"Policy {policy.policy_id} successfully created and assigned to {len(policy.objects_list)} objects."

    def read_policy(self, tx: LedgerTransaction, policy_id: str) -> str:
        return self.store.read(tx, _require_id(policy_id, "policyID"))

    def get_all_policies(self, tx: LedgerTransaction) -> str:
        policies = self.store.list_all(tx)
        self.logger.debug("Policies listed", count=len(policies), strategy=self.settings.policy_listing)
        return canonical_text([policy.to_record() for policy in policies])

    def update_policy(self, tx: LedgerTransaction, policy_id: str, updated_fields: Union[str, dict]) -> str:
        """Overwrite existing policy attributes; unknown keys are ignored."""
        policy_id = _require_id(policy_id, "policyID")
        payload = _parse_json(updated_fields, "updatedFields")
        if not isinstance(payload, dict):
            raise MalformedInputError("updatedFields must be a JSON object", {"argument": "updatedFields"})

        try:
            update = PolicyUpdate.model_validate(payload)
        except ValidationError as e:
            raise MalformedInputError(
                f"Update for policy {policy_id} is invalid",
                {"policy_id": policy_id, "errors": validation_errors(e)}
            ) from e

        changes = update.changes()
        ignored = sorted(key for key in payload if key not in changes)
        if ignored:
            self.logger.debug("Update keys ignored", policy_id=policy_id, keys=ignored)

        self.store.update(tx, policy_id, changes)
        return f"Policy {policy_id} successfully updated."

    def revoke_policy(self, tx: LedgerTransaction, policy_id: str) -> str:
        policy_id = _require_id(policy_id, "policyID")
        self.store.revoke(tx, policy_id)
        return f"Policy {policy_id} successfully revoked and removed."

    def validate_access_request(self, tx: LedgerTransaction, object_id: str, role: str,
                                timestamp: str, user_location: str) -> str:
        """Grant message naming the first matching policy; raises AccessDeniedError otherwise."""
        try:
            request = AccessRequest(
                object_id=object_id,
                role=role,
                timestamp=timestamp,
                user_location=user_location,
            )
        except ValidationError as e:
            raise MalformedInputError(
                "Access request is invalid",
                {"object_id": object_id, "errors": validation_errors(e)}
            ) from e

        policy = self.validator.validate(tx, request)
        return f"Access granted under policy {policy.policy_id}"
