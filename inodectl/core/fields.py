"""Field primitives: each reads one bit-packed field and writes it onto a record.

Every primitive has the shape ``decode_x(buffer, i, ..., msd)`` where ``i`` is
a byte offset relative to the start of the buffer handed to the recipe. Reads
are bounds-checked and raise `BufferTooShortError` instead of running past the
end of the buffer. The source buffer is never modified.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Union

from inodectl.core.errors import BufferTooShortError
from inodectl.core.model import Alarms, ManufacturerSpecificData, Position

Buffer = Union[bytes, bytearray, memoryview]
FieldDecoder = Callable[..., None]

UNUSED = -1
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_BATTERY_LEVEL = 100
DEFAULT_BATTERY_VOLTAGE = 2.88
SIGNATURE_LENGTH = 8

_LOW_BATTERY = 0x8000
_EXTENDED_ALARMS = (
    ("move_accelerometer", 0x01),
    ("level_accelerometer", 0x02),
    ("level_temperature", 0x04),
    ("level_humidity", 0x08),
    ("contact_change", 0x10),
    ("move_stopped", 0x20),
    ("move_g_timer", 0x40),
    ("level_accelerometer_change", 0x80),
    ("level_magnet_change", 0x100),
    ("level_magnet_timer", 0x200),
)

# Average (2) + sum (4) + options (2) + battery & light (1) + previous day (2).
_ENERGY_METER_EXTRA_LENGTH = 11


def _require(buffer: Buffer, i: int, size: int) -> None:
    if i < 0 or i + size > len(buffer):
        raise BufferTooShortError(i, size, len(buffer))


def read_u8(buffer: Buffer, i: int) -> int:
    _require(buffer, i, 1)
    return buffer[i]


def read_i8(buffer: Buffer, i: int) -> int:
    value = read_u8(buffer, i)
    return value - 0x100 if value & 0x80 else value


def read_u16le(buffer: Buffer, i: int) -> int:
    _require(buffer, i, 2)
    return buffer[i] | (buffer[i + 1] << 8)


def read_u32le(buffer: Buffer, i: int) -> int:
    _require(buffer, i, 4)
    return int.from_bytes(buffer[i : i + 4], "little")


def round_half_up(value: float, digits: int) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _clamp(value, low, high):
    if value < low:
        return low
    if value > high:
        return high
    return value


def battery_voltage(level: int) -> float:
    return (level - 10) * 1.2 / 100 + 1.8


def battery_level(code: int) -> int:
    """Map a 4-bit battery code to a percentage; code 1 means full."""
    if code == 1:
        return 100
    return 10 * (min(code, 11) - 1)


def decode_rtto(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.rtto = bool(read_u8(buffer, i) & 0x02)


def decode_input(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.input = bool(read_u8(buffer, i) & 0x08)


def decode_output(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.output = bool(read_u8(buffer, i) & 0x01)


def decode_magnetic_field_direction(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.magnetic_field_direction = bool(read_u8(buffer, i) & 0x08)


def decode_alarms(
    buffer: Buffer,
    battery_i: int,
    extended_i: int,
    msd: ManufacturerSpecificData,
) -> None:
    """Decode the low battery bit and, when present, the extended alarm word.

    The low battery bit comes from bit 2 (0x04) of the byte at `battery_i`,
    moved to bit 15. Either offset may be `UNUSED`.
    """
    battery = ((0 if battery_i == UNUSED else read_u8(buffer, battery_i)) << 13) & _LOW_BATTERY
    extended = 0 if extended_i == UNUSED else read_u16le(buffer, extended_i)
    alarms = extended | battery

    if extended_i == UNUSED:
        msd.alarms = Alarms(low_battery=bool(alarms & _LOW_BATTERY))
        return

    msd.alarms = Alarms(
        low_battery=bool(alarms & _LOW_BATTERY),
        **{name: bool(alarms & mask) for name, mask in _EXTENDED_ALARMS},
    )


def decode_groups(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.groups = read_u16le(buffer, i) & 0x0FFF


def decode_battery_level(buffer: Buffer, i: int, shift: int, msd: ManufacturerSpecificData) -> None:
    code = (read_u16le(buffer, i) >> shift) & 0x0F
    msd.battery_level = battery_level(code)
    msd.battery_voltage = battery_voltage(msd.battery_level)


def _motion_axis(value: int) -> int:
    # Devices encode negative axes as value - 0x1F, not two's complement.
    return value - (0x1F if value & 0x10 else 0)


def decode_motion_sensor(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    value = read_u16le(buffer, i)
    msd.position = Position(
        motion=bool(value & 0x8000),
        x=_motion_axis((value >> 10) & 0x1F),
        y=_motion_axis((value >> 5) & 0x1F),
        z=_motion_axis(value & 0x1F),
    )


def decode_csr_temperature(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    value = read_u16le(buffer, i)
    if value > 127:
        value -= 8192
    msd.temperature = _clamp(value, -30, 70)


def decode_mcp9844_temperature(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    b1 = read_u8(buffer, i)
    b2 = read_u8(buffer, i + 1)
    value = b1 * 0.0625 + 16 * (b2 & 0x0F)
    if b2 & 0x10:
        value -= 256
    msd.temperature = round_half_up(_clamp(value, -30, 70), 2)


def decode_si7021_temperature(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    value = read_u16le(buffer, i) * 175.72 * 4
    value /= 65536
    value -= 46.85
    msd.temperature = round_half_up(_clamp(value, -30, 70), 2)


def decode_si7021_humidity(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    value = read_u16le(buffer, i) * 125 * 4
    value /= 65536
    value -= 6
    msd.humidity = round_half_up(_clamp(value, 1, 100), 2)


def decode_magnetic_field(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    msd.magnetic_field = read_u16le(buffer, i)


def _yesterday_week_day() -> int:
    # Sunday is 0, matching the device week data.
    return (datetime.now() - timedelta(days=1)).isoweekday() % 7


def decode_energy_meter(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    options = read_u16le(buffer, i + 6)
    unit = (options >> 14) & 3
    constant = options & 0x3FFF

    if unit == 0:
        msd.average_unit = "kWh"
        msd.sum_unit = "kW"
        if constant == 0:
            constant = 1000
    elif unit == 1:
        msd.average_unit = "m³"
        msd.sum_unit = "m³"
        if constant == 0:
            constant = 1000
    else:
        msd.average_unit = "cnt"
        msd.sum_unit = "cnt"
        if constant == 0:
            constant = 1

    msd.unit = unit
    msd.constant = constant
    msd.average = round_half_up(60 * read_u16le(buffer, i) / constant, 3)
    msd.sum = round_half_up(read_u32le(buffer, i + 2) / constant, 3)

    if len(buffer) >= i + _ENERGY_METER_EXTRA_LENGTH:
        decode_battery_level(buffer, i + 8, 4, msd)
        msd.light_level = round_half_up((read_u8(buffer, i + 8) & 0x0F) * 100 / 15, 1)
        week_data = read_u16le(buffer, i + 9)
        msd.week_day = week_data >> 13
        msd.week_day_total = week_data & 0x1FFF
    else:
        msd.battery_level = DEFAULT_BATTERY_LEVEL
        msd.battery_voltage = DEFAULT_BATTERY_VOLTAGE
        msd.light_level = 0
        msd.week_day = _yesterday_week_day()
        msd.week_day_total = 0


def decode_time(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    value = (read_u16le(buffer, i) << 16) | read_u16le(buffer, i + 2)
    # The device clock is a signed 32-bit second counter.
    if value & 0x80000000:
        value -= 0x100000000
    msd.time = EPOCH + timedelta(seconds=value)


def decode_signature(buffer: Buffer, i: int, msd: ManufacturerSpecificData) -> None:
    _require(buffer, i, SIGNATURE_LENGTH)
    msd.signature = bytes(buffer[i : i + SIGNATURE_LENGTH])


def default_groups(buffer: Buffer, msd: ManufacturerSpecificData) -> None:
    msd.groups = 0


def default_battery_level(buffer: Buffer, msd: ManufacturerSpecificData) -> None:
    msd.battery_level = DEFAULT_BATTERY_LEVEL
    msd.battery_voltage = DEFAULT_BATTERY_VOLTAGE


def default_time(buffer: Buffer, msd: ManufacturerSpecificData) -> None:
    msd.time = datetime.now(timezone.utc)


def default_signature(buffer: Buffer, msd: ManufacturerSpecificData) -> None:
    msd.signature = bytes(SIGNATURE_LENGTH)


POSITION_DECODERS: dict[str, FieldDecoder] = {
    "motion": decode_motion_sensor,
}

VALUE_DECODERS: dict[str, FieldDecoder] = {
    "csr_temperature": decode_csr_temperature,
    "mcp9844_temperature": decode_mcp9844_temperature,
    "si7021_temperature": decode_si7021_temperature,
    "si7021_humidity": decode_si7021_humidity,
    "magnetic_field": decode_magnetic_field,
}

FLAG_DECODERS: dict[str, FieldDecoder] = {
    "input": decode_input,
    "output": decode_output,
    "magnetic_field_direction": decode_magnetic_field_direction,
}
