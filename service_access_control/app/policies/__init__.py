"""
Policy engine package.

Defines the policy and device models, the policy store with its device
index maintenance, policy listing strategies, and the first-match access
validator used by the Access Control Service.

Modules of interest:
- models: Policy, PolicyUpdate, Device and request models.
- store: Create/read/update/revoke of policy records.
- index: Reverse index of policy ids on device records.
- listing: Full-namespace and prefix-scoped policy listing.
- validator: Access request evaluation in device policy order.
"""

from .index import DeviceIndexMaintainer
from .listing import FullScanPolicyLister, PolicyLister, PrefixScanPolicyLister, build_policy_lister
from .models import AccessRequest, Device, Policy, PolicyUpdate
from .store import PolicyStore
from .validator import AccessValidator

__all__ = [
    "AccessRequest",
    "AccessValidator",
    "Device",
    "DeviceIndexMaintainer",
    "FullScanPolicyLister",
    "Policy",
    "PolicyLister",
    "PolicyStore",
    "PolicyUpdate",
    "PrefixScanPolicyLister",
    "build_policy_lister",
]
