"""
Unit tests for argument parsing in the access control contract.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from shared.errors import MalformedInputError
from service_access_control.app.policies.models import (
    AccessRequest, Device, Policy, PolicyUpdate, parse_flag, parse_timestamp,
)


class TestParseHelpers:
    """Test cases for scalar parsing helpers."""

    @pytest.mark.parametrize("value, expected", [
        (True, True),
        (False, False),
        ("true", True),
        ("TRUE", True),
        (" False ", False),
        ("", False),
    ])
    def test_parse_flag(self, value, expected):
        """Test accepted flag spellings."""
        assert parse_flag(value) is expected

    @pytest.mark.parametrize("value", ["yes", "1", 1, None])
    def test_parse_flag_rejects(self, value):
        """Test rejected flag values."""
        with pytest.raises(ValueError):
            parse_flag(value)

    def test_parse_timestamp_zones(self):
        """Test Z suffix, offsets and naive values."""
        expected = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)

        assert parse_timestamp("2025-06-01T10:00:00Z") == expected
        assert parse_timestamp("2025-06-01T12:00:00+02:00") == expected
        assert parse_timestamp("2025-06-01T10:00:00") == expected

    @pytest.mark.parametrize("value", ["", "   ", "yesterday", "2025-13-01T00:00:00Z"])
    def test_parse_timestamp_rejects(self, value):
        """Test unparseable timestamps."""
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_request_clock_time_is_utc(self):
        """Test the HH:MM view of a request."""
        request = AccessRequest(object_id="D1", timestamp="2025-06-01T23:30:00-02:00")

        assert request.clock_time == "01:30"
        assert request.role == ""


class TestPolicyModels:
    """Test cases for policy and device models."""

    def test_policy_defaults(self):
        """Test that omitted attributes take their empty values."""
        policy = Policy.model_validate({"PolicyID": "P1"})

        assert policy.to_record() == {
            "PolicyID": "P1",
            "ObjectsList": [],
            "Role": "",
            "AccessHours": "",
            "ObjectLocation": "",
            "PolicyExpiration": "",
            "MaxRequestsPerHour": None,
            "NotifyOnAccess": False,
            "UserLocation": "",
            "AllowCloudExport": False,
        }
        assert policy.expires_at is None
        assert policy.hours_window is None

    def test_policy_typed_fields(self):
        """Test text-to-type conversion of stored attributes."""
        policy = Policy.model_validate({
            "PolicyID": "P1",
            "AccessHours": "09:00-17:00",
            "MaxRequestsPerHour": "100",
            "NotifyOnAccess": "true",
            "Role": None,
        })

        assert policy.hours_window == ("09:00", "17:00")
        assert policy.max_requests_per_hour == 100
        assert policy.notify_on_access is True
        assert policy.role == ""

    @pytest.mark.parametrize("hours", ["9:00-17:00", "09:00-24:00", "09:00", "09:00-17:00-18:00"])
    def test_policy_rejects_access_hours(self, hours):
        """Test the HH:MM-HH:MM format."""
        with pytest.raises(ValueError):
            Policy.model_validate({"PolicyID": "P1", "AccessHours": hours})

    def test_inverted_window_is_accepted(self):
        """Test that a start after the end is stored as given."""
        policy = Policy.model_validate({"PolicyID": "P1", "AccessHours": "22:00-06:00"})

        assert policy.hours_window == ("22:00", "06:00")

    def test_stored_request_budget_text_is_kept(self):
        """Test that only records read back from the ledger keep non-numeric budgets."""
        record = {"PolicyID": "P1", "MaxRequestsPerHour": "unlimited"}

        assert Policy.from_record(record).to_record()["MaxRequestsPerHour"] == "unlimited"
        assert Policy.from_record({"PolicyID": "P1", "MaxRequestsPerHour": "12"}).max_requests_per_hour == 12
        with pytest.raises(ValueError):
            Policy.model_validate(record)

    @pytest.mark.parametrize("objects", [[""], ["D1", ""], ["D1", 7], "D1"])
    def test_objects_list_rejected_for_create_and_update(self, objects):
        """Test that both write paths share the ObjectsList check."""
        with pytest.raises(ValueError):
            Policy.model_validate({"PolicyID": "P1", "ObjectsList": objects})
        with pytest.raises(ValueError):
            PolicyUpdate.model_validate({"ObjectsList": objects})

    def test_update_keeps_only_provided_fields(self):
        """Test that changes() names only attributes the caller sent."""
        update = PolicyUpdate.model_validate({"Role": "admin", "NotifyOnAccess": "TRUE", "Bogus": 1})

        assert update.changes() == {"Role": "admin", "NotifyOnAccess": True}

    def test_update_explicit_null_clears_text(self):
        """Test that null text attributes become empty strings."""
        update = PolicyUpdate.model_validate({"UserLocation": None, "MaxRequestsPerHour": None})

        assert update.changes() == {"UserLocation": "", "MaxRequestsPerHour": None}

    def test_device_keeps_unknown_fields(self):
        """Test that device records round trip their extra attributes."""
        device = Device.model_validate({"Location": "lab", "Owner": "ops", "PolicyIDList": None})

        assert device.policy_id_list == []
        assert device.location == "lab"
        assert device.to_record() == {"Location": "lab", "Owner": "ops", "PolicyIDList": []}


class TestCreatePolicyArguments:
    """Test cases for CreatePolicy argument validation."""

    @pytest.fixture
    def arguments(self):
        """Valid CreatePolicy arguments after the transaction handle."""
        return {
            "policy_id": "P1",
            "objects_list": '["D1"]',
            "role": "admin",
            "access_hours": "09:00-17:00",
            "object_location": "",
            "policy_expiration": "2030-01-01T00:00:00Z",
            "max_requests_per_hour": "100",
            "notify_on_access": "true",
            "user_location": "",
            "allow_cloud_export": "false",
        }

    @pytest.mark.parametrize("field, value", [
        ("policy_id", ""),
        ("objects_list", "not json"),
        ("objects_list", '{"D1": true}'),
        ("objects_list", '["D1", 7]'),
        ("objects_list", '["D1", ""]'),
        ("access_hours", "9-5"),
        ("policy_expiration", "next year"),
        ("max_requests_per_hour", "many"),
        ("max_requests_per_hour", "-1"),
        ("notify_on_access", "sometimes"),
        ("allow_cloud_export", "no"),
    ])
    def test_malformed_arguments_never_touch_ledger(self, contract, arguments, field, value):
        """Test MalformedInput before any read or write."""
        tx = MagicMock()
        arguments[field] = value

        with pytest.raises(MalformedInputError):
            contract.create_policy(tx, **arguments)

        tx.get.assert_not_called()
        tx.put.assert_not_called()

    def test_error_details_are_json_safe(self, contract, arguments):
        """Test that validation errors carry field names and messages."""
        arguments["access_hours"] = "9-5"

        with pytest.raises(MalformedInputError) as exc_info:
            contract.create_policy(MagicMock(), **arguments)

        errors = exc_info.value.details["errors"]
        assert errors[0]["field"] == "AccessHours"
        assert "HH:MM-HH:MM" in errors[0]["message"]

    def test_blank_request_budget_is_unset(self, ledger, contract, stored, arguments):
        """Test that an empty MaxRequestsPerHour is stored as null."""
        arguments["max_requests_per_hour"] = ""

        ledger.submit(contract.create_policy, *arguments.values())

        assert stored("policy_P1")["MaxRequestsPerHour"] is None
