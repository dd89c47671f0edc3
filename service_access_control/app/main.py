"""
Access Control service: HTTP transaction submission for the policy engine.
"""

import json
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Body, Response
from pydantic import ValidationError

from shared.base_service import BaseService
from shared.errors import (
    AccessDeniedError, AccessLayerException, MalformedInputError, NoPoliciesAssociatedError, NotFoundError,
)
from shared.retry import RetryConfig

from .contract import AccessControlContract
from .ledger import InMemoryLedger, LedgerTransaction, canonicalize
from .policies.models import (
    AccessCheckRequest, Device, OperationResponse, PolicyCreateRequest, validation_errors,
)


class AccessControlService(BaseService):
    """Access control service implementation."""

    def __init__(self, ledger: Optional[InMemoryLedger] = None):
        super().__init__("access_control", 8020)

        settings = self.config.access_control
        self.ledger = ledger or InMemoryLedger(
            retry_config=RetryConfig(
                max_attempts=settings.commit_retry_attempts,
                base_delay=settings.commit_retry_base_delay,
            ),
            metrics=self.metrics,
        )
        self.contract = AccessControlContract(settings)

        self._setup_access_control_routes()

    def invoke(self, operation: str, fn: Callable[..., Any], *args) -> Any:
        """Submit one contract operation as a single ledger invocation."""
        start_time = time.time()
        try:
            result = self.ledger.submit(fn, *args)
        except AccessLayerException as e:
            self.metrics.record_invocation(operation, e.code.lower(), time.time() - start_time)
            raise

        self.metrics.record_invocation(operation, "ok", time.time() - start_time)
        return result

    def _setup_access_control_routes(self):
        """Set up policy and access routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "access_control",
                "message": "Ledger-backed policy engine - Access Control Service",
                "version": "1.0.0",
                "capabilities": ["policy_store", "device_index", "access_validation"]
            }

        @self.app.post("/policies", response_model=OperationResponse, status_code=201)
        def create_policy(request: PolicyCreateRequest):
            """Create or overwrite a policy."""
            message = self.invoke(
                "create_policy",
                self.contract.create_policy,
                request.policy_id,
                json.dumps(request.objects_list),
                request.role,
                request.access_hours,
                request.object_location,
                request.policy_expiration,
                request.max_requests_per_hour,
                request.notify_on_access,
                request.user_location,
                request.allow_cloud_export,
            )
            return OperationResponse(message=message)

        @self.app.get("/policies")
        def get_all_policies():
            """List every policy on the ledger."""
            text = self.invoke("get_all_policies", self.contract.get_all_policies)
            return Response(content=text, media_type="application/json")

        @self.app.get("/policies/{policy_id}")
        def read_policy(policy_id: str):
            """Read one policy as stored."""
            text = self.invoke("read_policy", self.contract.read_policy, policy_id)
            return Response(content=text, media_type="application/json")

        @self.app.patch("/policies/{policy_id}", response_model=OperationResponse)
        def update_policy(policy_id: str, updated_fields: Dict[str, Any] = Body(...)):
            """Overwrite existing policy attributes."""
            message = self.invoke(
                "update_policy",
                self.contract.update_policy,
                policy_id,
                json.dumps(updated_fields),
            )
            return OperationResponse(message=message)

        @self.app.delete("/policies/{policy_id}", response_model=OperationResponse)
        def revoke_policy(policy_id: str):
            """Revoke a policy and detach it from its devices."""
            message = self.invoke("revoke_policy", self.contract.revoke_policy, policy_id)
            return OperationResponse(message=message)

        @self.app.post("/access/validate", response_model=OperationResponse)
        def validate_access(request: AccessCheckRequest):
            """Validate an access request against a device's policies."""
            try:
                message = self.invoke(
                    "validate_access_request",
                    self.contract.validate_access_request,
                    request.object_id,
                    request.role,
                    request.timestamp,
                    request.user_location,
                )
            except (AccessDeniedError, NoPoliciesAssociatedError) as e:
                self.metrics.record_access_decision(e.code.lower())
                raise

            self.metrics.record_access_decision("granted")
            return OperationResponse(message=message)

        @self.app.put("/devices/{object_id}")
        def register_device(object_id: str, record: Dict[str, Any] = Body(...)):
            """Store a device record on the ledger host."""
            return self.invoke("register_device", _put_device, object_id, record)

        @self.app.get("/devices/{object_id}")
        def read_device(object_id: str):
            """Read a device record, including its PolicyIDList."""
            return self.invoke("read_device", _get_device, self.contract, object_id)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check access control dependencies."""
        try:
            self.ledger.keys()
            return {"ledger": "ok"}
        except Exception:
            return {"ledger": "error"}


def _put_device(tx: LedgerTransaction, object_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
    try:
        device = Device.model_validate(record)
    except ValidationError as e:
        raise MalformedInputError(
            f"Device {object_id} record is invalid",
            {"object_id": object_id, "errors": validation_errors(e)}
        ) from e

    tx.put(object_id, canonicalize(device.to_record()))
    return device.to_record()


def _get_device(tx: LedgerTransaction, contract: AccessControlContract, object_id: str) -> Dict[str, Any]:
    device = contract.index.load_device(tx, object_id)
    if device is None:
        raise NotFoundError(f"Device {object_id} not found", {"object_id": object_id})
    return device.to_record()


def create_app():
    """Create access control service application."""
    service = AccessControlService()
    return service.app


if __name__ == "__main__":
    service = AccessControlService()
    service.run()
