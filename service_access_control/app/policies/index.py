"""
Device index maintenance.

Each device record carries PolicyIDList, the reverse index of the
policies whose ObjectsList names it. The list is only touched here, and
only for devices that already exist; the engine never creates or deletes
device records.
"""

from typing import Iterable, List, Optional

from pydantic import ValidationError

from shared.errors import RecordDecodeError
from shared.logging import get_logger

from ..ledger import LedgerTransaction, canonicalize, decode_record
from .models import Device


class DeviceIndexMaintainer:
    """Idempotent add/remove of policy ids on device records."""

    def __init__(self):
        self.logger = get_logger("access_control.device_index")

    def load_device(self, tx: LedgerTransaction, object_id: str) -> Optional[Device]:
        """Read a device; None when the record is absent or empty."""
        raw = tx.get(object_id)
        if not raw:
            return None

        try:
            return Device.model_validate(decode_record(raw))
        except (RecordDecodeError, ValidationError) as e:
            raise RecordDecodeError(
                f"Device {object_id} record is malformed",
                {"object_id": object_id, "error": str(e)}
            ) from e

    def save_device(self, tx: LedgerTransaction, object_id: str, device: Device) -> None:
        tx.put(object_id, canonicalize(device.to_record()))

    def attach(self, tx: LedgerTransaction, policy_id: str, object_ids: Iterable[str]) -> List[str]:
        """Append policy_id to each existing device; returns the devices found."""
        found = []
        for object_id in object_ids:
            device = self.load_device(tx, object_id)
            if device is None:
                self.logger.debug("Device not on ledger, skipped", object_id=object_id, policy_id=policy_id)
                continue

            found.append(object_id)
            if policy_id in device.policy_id_list:
                continue

            device.policy_id_list.append(policy_id)
            self.save_device(tx, object_id, device)

        return found

    def detach(self, tx: LedgerTransaction, policy_id: str, object_ids: Iterable[str]) -> List[str]:
        """Remove policy_id from each existing device; returns the devices found."""
        found = []
        for object_id in object_ids:
            device = self.load_device(tx, object_id)
            if device is None:
                continue

            found.append(object_id)
            if policy_id not in device.policy_id_list:
                continue

            device.policy_id_list = [pid for pid in device.policy_id_list if pid != policy_id]
            self.save_device(tx, object_id, device)

        return found
