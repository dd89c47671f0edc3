"""
Policy and device data models for the Access Control Service.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

# Fixed-width, zero-padded 24h clock; string comparison relies on it
ACCESS_HOURS_PATTERN = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d-(?:[01]\d|2[0-3]):[0-5]\d$")

# Validation context for records read back from the ledger
STORED_RECORD = {"stored": True}


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; 'Z' and naive values are UTC."""
    text = (value or "").strip()
    if not text:
        raise ValueError("timestamp must not be empty")
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"invalid ISO-8601 timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    """JSON-safe summary of a pydantic validation error."""
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


def parse_flag(value: Any) -> bool:
    """Parse a boolean that callers may send as text."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered in ("false", ""):
            return False
    raise ValueError(f"expected 'true' or 'false', got {value!r}")


class _PolicyFields(BaseModel):
    """Field validation shared by stored policies and partial updates."""

    model_config = ConfigDict(extra="ignore")

    @field_validator(
        "role", "access_hours", "object_location", "policy_expiration", "user_location",
        mode="before", check_fields=False,
    )
    @classmethod
    def _empty_when_null(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("access_hours", check_fields=False)
    @classmethod
    def _check_access_hours(cls, value: str) -> str:
        if value and not ACCESS_HOURS_PATTERN.match(value):
            raise ValueError("AccessHours must look like 'HH:MM-HH:MM'")
        return value

    @field_validator("policy_expiration", check_fields=False)
    @classmethod
    def _check_expiration(cls, value: str) -> str:
        if value:
            parse_timestamp(value)
        return value

    @field_validator("notify_on_access", "allow_cloud_export", mode="before", check_fields=False)
    @classmethod
    def _check_flag(cls, value: Any) -> bool:
        return parse_flag(value)

    @field_validator("max_requests_per_hour", mode="before", check_fields=False)
    @classmethod
    def _request_budget(cls, value: Any, info: ValidationInfo) -> Any:
        # Stored records keep non-numeric text as it was written
        stored = bool(info.context and info.context.get("stored"))
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                value = int(value.strip())
            except ValueError:
                if stored:
                    return value
                raise ValueError("MaxRequestsPerHour must be a whole number") from None
        if isinstance(value, int) and not isinstance(value, bool) and value < 0 and not stored:
            raise ValueError("MaxRequestsPerHour must not be negative")
        return value

    @field_validator("objects_list", mode="before", check_fields=False)
    @classmethod
    def _require_list(cls, value: Any) -> Any:
        if not isinstance(value, list) or not all(isinstance(oid, str) and oid for oid in value):
            raise ValueError("ObjectsList must be a list of non-empty object identifiers")
        return value


class Policy(_PolicyFields):
    """Access policy as stored on the ledger under policy_<PolicyID>."""

    policy_id: str = Field(..., alias="PolicyID", min_length=1)
    objects_list: List[str] = Field(default_factory=list, alias="ObjectsList")
    role: str = Field("", alias="Role")
    access_hours: str = Field("", alias="AccessHours")
    object_location: str = Field("", alias="ObjectLocation")
    policy_expiration: str = Field("", alias="PolicyExpiration")
    max_requests_per_hour: Optional[Union[int, str]] = Field(None, alias="MaxRequestsPerHour")
    notify_on_access: bool = Field(False, alias="NotifyOnAccess")
    user_location: str = Field("", alias="UserLocation")
    allow_cloud_export: bool = Field(False, alias="AllowCloudExport")

    @classmethod
    def from_record(cls, record: Any) -> "Policy":
        """Validate a record read back from the ledger."""
        return cls.model_validate(record, context=STORED_RECORD)

    @property
    def expires_at(self) -> Optional[datetime]:
        return parse_timestamp(self.policy_expiration) if self.policy_expiration else None

    @property
    def hours_window(self) -> Optional[Tuple[str, str]]:
        if not self.access_hours:
            return None
        start, end = self.access_hours.split("-")
        return start, end

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PolicyUpdate(_PolicyFields):
    """Partial policy update.

    Only keys naming an existing policy attribute survive parsing; the
    identity key and unknown keys are dropped.
    """

    objects_list: Optional[List[str]] = Field(None, alias="ObjectsList")
    role: Optional[str] = Field(None, alias="Role")
    access_hours: Optional[str] = Field(None, alias="AccessHours")
    object_location: Optional[str] = Field(None, alias="ObjectLocation")
    policy_expiration: Optional[str] = Field(None, alias="PolicyExpiration")
    max_requests_per_hour: Optional[int] = Field(None, alias="MaxRequestsPerHour")
    notify_on_access: Optional[bool] = Field(None, alias="NotifyOnAccess")
    user_location: Optional[str] = Field(None, alias="UserLocation")
    allow_cloud_export: Optional[bool] = Field(None, alias="AllowCloudExport")

    def changes(self) -> Dict[str, Any]:
        """Provided fields keyed by their ledger attribute name."""
        return self.model_dump(by_alias=True, mode="json", include=self.model_fields_set)


class Device(BaseModel):
    """Device record; fields other than PolicyIDList are carried through untouched."""

    model_config = ConfigDict(extra="allow")

    policy_id_list: List[str] = Field(default_factory=list, alias="PolicyIDList")

    @field_validator("policy_id_list", mode="before")
    @classmethod
    def _missing_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def location(self) -> Optional[str]:
        return (self.model_extra or {}).get("Location")

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class AccessRequest(BaseModel):
    """A parsed access validation request."""

    object_id: str = Field(..., min_length=1)
    role: str = ""
    timestamp: str
    user_location: str = ""

    @field_validator("role", "user_location", mode="before")
    @classmethod
    def _empty_when_null(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, value: str) -> str:
        parse_timestamp(value)
        return value

    @property
    def instant(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def clock_time(self) -> str:
        """Request time of day as UTC 'HH:MM'."""
        return self.instant.astimezone(timezone.utc).strftime("%H:%M")


class PolicyCreateRequest(BaseModel):
    """HTTP request model for creating a policy."""

    policy_id: str = Field(..., description="Policy identifier")
    objects_list: List[str] = Field(default_factory=list, description="Device identifiers in scope")
    role: str = Field("", description="Required role, empty for any")
    access_hours: str = Field("", description="Daily window 'HH:MM-HH:MM' (UTC)")
    object_location: str = Field("", description="Device location (stored, not enforced by default)")
    policy_expiration: str = Field("", description="ISO-8601 expiration timestamp")
    max_requests_per_hour: Optional[Union[int, str]] = Field(None, description="Stored request budget")
    notify_on_access: Union[bool, str] = Field(False, description="Notify on access")
    user_location: str = Field("", description="Required user location, empty for any")
    allow_cloud_export: Union[bool, str] = Field(False, description="Allow cloud export")


class AccessCheckRequest(BaseModel):
    """HTTP request model for access validation."""

    object_id: str = Field(..., description="Device identifier")
    role: str = Field("", description="Requester role")
    timestamp: str = Field(..., description="ISO-8601 request timestamp")
    user_location: str = Field("", description="Requester location")


class OperationResponse(BaseModel):
    """HTTP response model for contract confirmations."""

    message: str
