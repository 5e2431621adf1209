"""Core data models shared by the field decoders, recipes, and scanner."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import IntEnum
from typing import Any

from inodectl.core.hci import EirDataType


class DeviceModel(IntEnum):
    Beacon = 0x80
    EnergyMeter = 0x82
    ControlId = 0x88
    Nav = 0x89
    CareSensor1 = 0x91
    CareSensor2 = 0x92
    CareSensor3 = 0x93
    CareSensor4 = 0x94
    CareSensor5 = 0x95
    CareSensor6 = 0x96
    CareSensorT = 0x9A
    CareSensorHT = 0x9B
    ControlPoint = 0xB2
    CareRelay = 0xB3
    TransceiverUart = 0xB5
    TransceiverUsb = 0xB6
    Gsm = 0xB7


@dataclass(frozen=True)
class Alarms:
    """Alarm bitmap. Extended flags are None when the payload has no extended word."""

    low_battery: bool
    move_accelerometer: bool | None = None
    level_accelerometer: bool | None = None
    level_temperature: bool | None = None
    level_humidity: bool | None = None
    contact_change: bool | None = None
    move_stopped: bool | None = None
    move_g_timer: bool | None = None
    level_accelerometer_change: bool | None = None
    level_magnet_change: bool | None = None
    level_magnet_timer: bool | None = None

    @property
    def extended(self) -> bool:
        return self.move_accelerometer is not None

    def as_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class Position:
    motion: bool
    x: int
    y: int
    z: int


@dataclass
class ManufacturerSpecificData:
    """Decoded iNode MSD record.

    The shape depends on the device model: fields a model does not carry stay
    None. Instances are filled in place by a recipe, either fresh from
    `Decoder.decode_msd` or as a container handed over by the host framework.
    """

    type: int = EirDataType.ManufacturerSpecificData
    type_label: str = EirDataType.ManufacturerSpecificData.name
    company_identifier: int | None = None
    model: int | None = None
    model_label: str | None = None
    rtto: bool | None = None
    alarms: Alarms | None = None
    groups: int | None = None
    battery_level: int | None = None
    battery_voltage: float | None = None
    position: Position | None = None
    temperature: float | None = None
    humidity: float | None = None
    magnetic_field: int | None = None
    magnetic_field_direction: bool | None = None
    input: bool | None = None
    output: bool | None = None
    time: datetime | None = None
    signature: bytes | None = None
    unit: int | None = None
    constant: int | None = None
    average: float | None = None
    sum: float | None = None
    average_unit: str | None = None
    sum_unit: str | None = None
    light_level: float | None = None
    week_day: int | None = None
    week_day_total: int | None = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Alarms):
                value = value.as_dict()
            elif isinstance(value, Position):
                value = {"motion": value.motion, "x": value.x, "y": value.y, "z": value.z}
            out[f.name] = value
        return out


@dataclass(frozen=True)
class EirDataStructure:
    type: int
    type_label: str
    value: Any


@dataclass(frozen=True)
class AdvertisingReport:
    """Report-shaped wrapper synthesized around one decoded GSM record."""

    event_type: int
    event_type_label: str
    address_type: int
    address_type_label: str
    address: str
    rssi: int
    data: tuple[EirDataStructure | ManufacturerSpecificData, ...] = field(default_factory=tuple)
    length: int = -1

    @property
    def local_name(self) -> str | None:
        for entry in self.data:
            if isinstance(entry, EirDataStructure) and entry.type == EirDataType.LocalNameComplete:
                return entry.value
        return None

    @property
    def msd(self) -> ManufacturerSpecificData | None:
        for entry in self.data:
            if isinstance(entry, ManufacturerSpecificData):
                return entry
        return None

    def as_dict(self) -> dict[str, Any]:
        data: list[dict[str, Any]] = []
        for entry in self.data:
            if isinstance(entry, ManufacturerSpecificData):
                data.append(entry.as_dict())
            else:
                data.append({"type": entry.type, "type_label": entry.type_label, "value": entry.value})
        return {
            "event_type": self.event_type,
            "event_type_label": self.event_type_label,
            "address_type": self.address_type,
            "address_type_label": self.address_type_label,
            "address": self.address,
            "length": self.length,
            "data": data,
            "rssi": self.rssi,
        }


@dataclass(frozen=True)
class ModelInfo:
    model: DeviceModel
    label: str
    transports: tuple[str, ...]
