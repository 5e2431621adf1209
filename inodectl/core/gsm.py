"""Scanner for length-prefixed record batches relayed by iNode GSM gateways.

A batch is a sequence of ``type (1) | length (1) | data (length)`` records.
Each long-enough record with a known device model is decoded with the GSM
recipe table and wrapped in a synthesized advertising report, so callers can
treat relayed telemetry exactly like a received advertisement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from inodectl.core.dispatch import model_byte
from inodectl.core.errors import (
    FramingTruncatedError,
    InodeError,
    RecordDecodeError,
    UnsupportedModelError,
)
from inodectl.core.fields import Buffer, read_i8, read_u8
from inodectl.core.hci import AdvertisingReportAddressType, AdvertisingReportEventType, EirDataType
from inodectl.core.model import AdvertisingReport, EirDataStructure, ManufacturerSpecificData
from inodectl.core.recipes import RecipeTable

LOGGER = logging.getLogger(__name__)

RECORD_HEADER_LENGTH = 2
MIN_RECORD_LENGTH = 24
_MAC_FIRST = 2
_MAC_LAST = 7
_NAME_START = 8
_NAME_END = 24
_RSSI_FROM_END = 4


class SkipReason(str, Enum):
    TOO_SHORT = "too_short"
    UNSUPPORTED_MODEL = "unsupported_model"
    DECODE_FAILURE = "decode_failure"


@dataclass(frozen=True)
class SkippedRecord:
    """A record the scanner stepped over, kept so hosts can log or count it."""

    offset: int
    record_type: int
    length: int
    reason: SkipReason
    error: InodeError | None = None


@dataclass(frozen=True)
class GsmScan:
    reports: tuple[AdvertisingReport, ...]
    skipped: tuple[SkippedRecord, ...] = ()
    truncation: FramingTruncatedError | None = None

    @property
    def truncated(self) -> bool:
        return self.truncation is not None


def decode_gsm_mac_address(record_data: Buffer) -> str:
    return ":".join(f"{read_u8(record_data, i):02X}" for i in range(_MAC_LAST, _MAC_FIRST - 1, -1))


def decode_gsm_local_name(record_data: Buffer) -> str:
    return bytes(record_data[_NAME_START:_NAME_END]).decode("utf-8", errors="replace").replace("\x00", "")


def decode_gsm_record(
    record_type: int,
    record_data: Buffer,
    table: RecipeTable,
    *,
    offset: int = 0,
) -> AdvertisingReport | SkippedRecord:
    """Decode one record into a report, or describe why it was skipped.

    Never raises: an unknown model and any decode failure both come back as
    a `SkippedRecord`.
    """
    try:
        model = model_byte(record_data)
        recipe = table.lookup(model)
        if recipe is None:
            return SkippedRecord(
                offset=offset,
                record_type=record_type,
                length=len(record_data),
                reason=SkipReason.UNSUPPORTED_MODEL,
                error=UnsupportedModelError(model, table.transport),
            )

        msd = ManufacturerSpecificData(model=model)
        report = AdvertisingReport(
            event_type=AdvertisingReportEventType.AdvInd,
            event_type_label=AdvertisingReportEventType.AdvInd.name,
            address_type=AdvertisingReportAddressType.Public,
            address_type_label=AdvertisingReportAddressType.Public.name,
            address=decode_gsm_mac_address(record_data),
            rssi=read_i8(record_data, len(record_data) - _RSSI_FROM_END),
            data=(
                EirDataStructure(
                    type=EirDataType.LocalNameComplete,
                    type_label=EirDataType.LocalNameComplete.name,
                    value=decode_gsm_local_name(record_data),
                ),
                msd,
            ),
        )
        recipe.apply(record_data, msd)
    except Exception as exc:
        return SkippedRecord(
            offset=offset,
            record_type=record_type,
            length=len(record_data),
            reason=SkipReason.DECODE_FAILURE,
            error=RecordDecodeError(offset, str(exc)),
        )

    return report


def scan_gsm_data(gsm_time: int | None, gsm_data: Buffer, table: RecipeTable) -> GsmScan:
    """Walk a GSM batch and decode every record that can be decoded.

    `gsm_time` is the batch reference time reported by the gateway. Relayed
    care sensor records without a clock of their own are stamped with the
    current time instead, so it does not affect decoding.

    Scanning stops at the first record whose declared length runs past the
    end of the batch; reports decoded before it are kept.
    """
    reports: list[AdvertisingReport] = []
    skipped: list[SkippedRecord] = []
    truncation: FramingTruncatedError | None = None

    i = 0
    while i < len(gsm_data):
        start = i
        if i + RECORD_HEADER_LENGTH > len(gsm_data):
            truncation = FramingTruncatedError(start, RECORD_HEADER_LENGTH, len(gsm_data) - start)
            break

        record_type = gsm_data[i]
        record_length = gsm_data[i + 1]
        i += RECORD_HEADER_LENGTH
        record_data = gsm_data[i : i + record_length]

        if len(record_data) != record_length:
            truncation = FramingTruncatedError(start, record_length, len(record_data))
            break

        i += record_length

        if record_length < MIN_RECORD_LENGTH:
            skipped.append(
                SkippedRecord(
                    offset=start,
                    record_type=record_type,
                    length=record_length,
                    reason=SkipReason.TOO_SHORT,
                )
            )
            continue

        result = decode_gsm_record(record_type, record_data, table, offset=start)
        if isinstance(result, SkippedRecord):
            skipped.append(result)
        else:
            reports.append(result)

    for record in skipped:
        LOGGER.debug(
            "Skipped GSM record type 0x%02X at offset %d (%s): %s",
            record.record_type,
            record.offset,
            record.reason.value,
            record.error,
        )
    if truncation is not None:
        LOGGER.warning("Stopped scanning GSM batch (time=%s): %s", gsm_time, truncation)

    return GsmScan(reports=tuple(reports), skipped=tuple(skipped), truncation=truncation)
