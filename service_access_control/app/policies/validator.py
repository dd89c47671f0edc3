"""
Access validation for the Access Control Service.
"""

from typing import Optional

from shared.errors import AccessDeniedError, NoPoliciesAssociatedError, NotFoundError
from shared.logging import get_logger

from ..ledger import LedgerTransaction
from .index import DeviceIndexMaintainer
from .models import AccessRequest, Device, Policy
from .store import PolicyStore


class AccessValidator:
    """First-match evaluation of a device's policies. Never writes."""

    def __init__(self,
                 store: PolicyStore,
                 index: DeviceIndexMaintainer,
                 enforce_object_location: bool = False):
        self.logger = get_logger("access_control.validator")
        self.store = store
        self.index = index
        self.enforce_object_location = enforce_object_location

    def validate(self, tx: LedgerTransaction, request: AccessRequest) -> Policy:
        """Return the first policy granting the request, or raise AccessDeniedError."""
        device = self.index.load_device(tx, request.object_id)
        if device is None:
            raise NotFoundError(f"Device {request.object_id} not found", {"object_id": request.object_id})

        if not device.policy_id_list:
            raise NoPoliciesAssociatedError(
                f"No policies associated with the device {request.object_id}",
                {"object_id": request.object_id}
            )

        # List order is evaluation priority
        for policy_id in device.policy_id_list:
            policy = self.store.load(tx, policy_id)
            if policy is None:
                self.logger.debug("Policy missing, skipped", policy_id=policy_id, object_id=request.object_id)
                continue

            reason = self._mismatch(policy, request, device)
            if reason:
                self.logger.debug(
                    "Policy does not match",
                    policy_id=policy_id,
                    object_id=request.object_id,
                    reason=reason
                )
                continue

            self.logger.info("Access granted", policy_id=policy_id, object_id=request.object_id)
            return policy

        self.logger.info("Access denied", object_id=request.object_id, evaluated=len(device.policy_id_list))
        raise AccessDeniedError(
            f"Access denied: no policy matches the criteria for the device {request.object_id}",
            {"object_id": request.object_id}
        )

    def _mismatch(self, policy: Policy, request: AccessRequest, device: Device) -> Optional[str]:
        """Name the first rule the request fails, or None when all pass."""
        if policy.role and policy.role != request.role:
            return "role"

        if policy.user_location and policy.user_location != request.user_location:
            return "user_location"

        expires_at = policy.expires_at
        if expires_at is not None and request.instant > expires_at:
            return "expired"

        window = policy.hours_window
        if window is not None:
            start, end = window
            # Zero-padded HH:MM strings order the same as the times they name
            if not start <= request.clock_time <= end:
                return "access_hours"

        if self.enforce_object_location and policy.object_location:
            if policy.object_location != device.location:
                return "object_location"

        return None
