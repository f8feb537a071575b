"""
============================================================================
PING MONITOR - DEVICE MANAGEMENT
============================================================================
Validated create / update / delete / read operations on monitored devices.

Payloads are plain dicts (or already-built schema objects) and are checked
with pydantic before they reach the repository. A rejected payload raises
InvalidDeviceError carrying the payload and the pydantic issues.
============================================================================
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from database.manager import DeviceRepository
from database.models import MonitorDevice, MonitorTrigger, Protocol
from exceptions import InvalidDeviceError
from utils.logger import get_logger
from utils.validators import DataValidator, TargetValidator


logger = get_logger("DeviceService")

WINDOW_MESSAGE = "Notification time range must be between 0000 and 2400"


def _check_window(value: Optional[int]) -> Optional[int]:
    if value is not None and not DataValidator.is_valid_window_time(value):
        raise ValueError(WINDOW_MESSAGE)
    return value


def _check_identifier(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not TargetValidator.is_valid_identifier(value):
        raise ValueError(f"'{value}' is neither an IP address nor a valid hostname")
    return value


def _check_notify(value: Optional[str]) -> Optional[str]:
    # smtplib only sends ASCII envelope addresses
    if value is not None and not value.isascii():
        raise ValueError(f"'{value}' is not a plain ASCII email address")
    return value


# ============================================================================
# SCHEMAS
# ============================================================================

class MonitorDeviceCreate(BaseModel):
    """Payload accepted when adding a device."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    identifier: str = Field(min_length=1, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: Protocol = Field(
        default=Protocol.ICMP,
        validation_alias=AliasChoices("protocol", "proto"),
    )
    persist: bool = False
    monitor_trigger: MonitorTrigger = MonitorTrigger.OFFLINE
    monitor_start_utc: int
    monitor_end_utc: int
    requested_by: str = Field(min_length=1, max_length=255)
    notify: EmailStr
    comments: Optional[str] = None
    email_subject: str
    email_body: str

    @field_validator("monitor_start_utc", "monitor_end_utc")
    @classmethod
    def validate_window(cls, value: Optional[int]) -> Optional[int]:
        return _check_window(value)

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, value: Optional[str]) -> Optional[str]:
        return _check_identifier(value)

    @field_validator("notify")
    @classmethod
    def validate_notify(cls, value: Optional[str]) -> Optional[str]:
        return _check_notify(value)

    @model_validator(mode="after")
    def require_port_for_tcp(self) -> "MonitorDeviceCreate":
        if self.protocol == Protocol.TCP and self.port is None:
            raise ValueError("A port is required when protocol is TCP")
        return self

    def to_model(self) -> MonitorDevice:
        return MonitorDevice(**self.model_dump(), been_notified=False)


class MonitorDeviceUpdate(BaseModel):
    """Partial update of an existing device; only ``id`` is required."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: int
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    identifier: Optional[str] = Field(default=None, min_length=1, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: Optional[Protocol] = Field(
        default=None,
        validation_alias=AliasChoices("protocol", "proto"),
    )
    persist: Optional[bool] = None
    monitor_trigger: Optional[MonitorTrigger] = None
    monitor_start_utc: Optional[int] = None
    monitor_end_utc: Optional[int] = None
    notify: Optional[EmailStr] = None
    comments: Optional[str] = None
    email_subject: Optional[str] = None
    email_body: Optional[str] = None
    been_notified: Optional[bool] = None

    @field_validator("monitor_start_utc", "monitor_end_utc")
    @classmethod
    def validate_window(cls, value: Optional[int]) -> Optional[int]:
        return _check_window(value)

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, value: Optional[str]) -> Optional[str]:
        return _check_identifier(value)

    @field_validator("notify")
    @classmethod
    def validate_notify(cls, value: Optional[str]) -> Optional[str]:
        return _check_notify(value)

    def to_partial(self) -> Dict[str, Any]:
        """``{"id": ..., <field>: <value>}`` with only the fields that were set."""
        return self.model_dump(exclude_unset=True)


DevicePayload = Union[Mapping[str, Any], BaseModel]


def _parse(schema: type, payload: DevicePayload) -> Any:
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise InvalidDeviceError(
            payload,
            issues=e.errors(include_url=False, include_context=False),
            message=f"Invalid monitor device: {e.error_count()} issue(s)",
            cause=e,
        ) from e


# ============================================================================
# DEVICE SERVICE
# ============================================================================

class DeviceService:
    """
    Device management on top of the repository.

    The whole batch is validated before anything is written, so a single
    invalid payload rejects the batch.
    """

    def __init__(self, repository: DeviceRepository):
        self.repository = repository

    async def add_devices(self, payloads: Iterable[DevicePayload]) -> List[MonitorDevice]:
        devices = [_parse(MonitorDeviceCreate, p).to_model() for p in payloads]
        if not devices:
            return []

        created = await self.repository.create_devices(devices)
        logger.info(f"Added {len(created)} devices")
        return created

    async def remove_devices(self, device_ids: Sequence[int]) -> int:
        removed = await self.repository.delete_devices(list(device_ids))
        logger.info(f"Removed {removed} of {len(device_ids)} requested devices")
        return removed

    async def update_devices(self, payloads: Iterable[DevicePayload]) -> List[MonitorDevice]:
        """
        Apply partial updates and return the updated devices.

        A device left as TCP without a port by the update is rejected.
        """
        updates = [_parse(MonitorDeviceUpdate, p) for p in payloads]
        if not updates:
            return []

        partials = [u.to_partial() for u in updates]
        ids = [p["id"] for p in partials]

        current = {d.id: d for d in await self.repository.get_devices(ids)}
        for update in updates:
            self._check_tcp_port(update, current.get(update.id))

        await self.repository.update_devices(partials)
        return await self.repository.get_devices(ids)

    async def get_devices(self, device_ids: Optional[Sequence[int]] = None) -> List[MonitorDevice]:
        return await self.repository.get_devices(device_ids)

    @staticmethod
    def _check_tcp_port(update: MonitorDeviceUpdate, device: Optional[MonitorDevice]) -> None:
        fields = update.model_fields_set
        protocol = update.protocol if "protocol" in fields else getattr(device, "protocol", None)
        port = update.port if "port" in fields else getattr(device, "port", None)

        if protocol == Protocol.TCP and port is None:
            raise InvalidDeviceError(
                update.to_partial(),
                issues=[{"loc": ("port",), "msg": "A port is required when protocol is TCP"}],
                message=f"Device {update.id} would be TCP without a port",
            )
