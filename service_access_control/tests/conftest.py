"""
Fixtures shared by the Access Control Service tests.
"""

from typing import Any, Dict, Optional

import pytest

from shared.config import AccessControlSettings
from shared.retry import RetryConfig
from service_access_control.app.contract import AccessControlContract
from service_access_control.app.ledger import InMemoryLedger, canonicalize, decode_record


@pytest.fixture
def ledger():
    """Create an empty ledger that retries conflicts without sleeping."""
    return InMemoryLedger(retry_config=RetryConfig(max_attempts=3, base_delay=0.0, jitter=False))


@pytest.fixture
def contract():
    """Create a contract with default settings."""
    return AccessControlContract(AccessControlSettings())


@pytest.fixture
def add_device(ledger):
    """Store a device record directly on the ledger."""
    def _add(object_id: str, **fields: Any) -> None:
        with ledger.transaction() as tx:
            tx.put(object_id, canonicalize(fields))
    return _add


@pytest.fixture
def stored(ledger):
    """Read a committed record back as Python data."""
    def _stored(key: str) -> Optional[Dict[str, Any]]:
        raw = ledger.get_committed(key)
        return decode_record(raw) if raw else None
    return _stored


@pytest.fixture
def create_policy(ledger, contract):
    """Submit CreatePolicy with defaults for every optional argument."""
    def _create(policy_id: str, objects=("D1",), role: str = "", access_hours: str = "",
                object_location: str = "", policy_expiration: str = "", max_requests=None,
                notify: str = "false", user_location: str = "", cloud_export: str = "false") -> str:
        return ledger.submit(
            contract.create_policy,
            policy_id,
            canonicalize(list(objects)).decode("utf-8"),
            role,
            access_hours,
            object_location,
            policy_expiration,
            max_requests,
            notify,
            user_location,
            cloud_export,
        )
    return _create
