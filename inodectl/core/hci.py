"""Constants of the host HCI parser that synthesized reports must carry."""

from __future__ import annotations

from enum import IntEnum


class EirDataType(IntEnum):
    LocalNameComplete = 0x09
    ManufacturerSpecificData = 0xFF


class AdvertisingReportEventType(IntEnum):
    AdvInd = 0x00


class AdvertisingReportAddressType(IntEnum):
    Public = 0x00
