"""Stable public API for decoding iNode payloads.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from functools import lru_cache

from inodectl.core.decoder import Decoder, EirDecoder, parse_hex
from inodectl.core.errors import (
    BufferTooShortError,
    DecodeError,
    FramingTruncatedError,
    InodeError,
    PayloadFormatError,
    RecipeLoadError,
    RecipeValidationError,
    RecordDecodeError,
    UnsupportedModelError,
)
from inodectl.core.fields import Buffer
from inodectl.core.gsm import GsmScan, SkippedRecord, SkipReason
from inodectl.core.model import (
    AdvertisingReport,
    Alarms,
    DeviceModel,
    EirDataStructure,
    ManufacturerSpecificData,
    ModelInfo,
    Position,
)

__all__ = [
    "InodeError",
    "DecodeError",
    "UnsupportedModelError",
    "BufferTooShortError",
    "FramingTruncatedError",
    "RecordDecodeError",
    "PayloadFormatError",
    "RecipeLoadError",
    "RecipeValidationError",
    "AdvertisingReport",
    "Alarms",
    "DeviceModel",
    "EirDataStructure",
    "ManufacturerSpecificData",
    "ModelInfo",
    "Position",
    "GsmScan",
    "SkippedRecord",
    "SkipReason",
    "Decoder",
    "default_decoder",
    "parse_hex",
    "list_models",
    "decode_msd",
    "decode_gsm_data",
    "scan_gsm_data",
    "register_manufacturer_specific_data_decoder",
]


@lru_cache(maxsize=1)
def default_decoder() -> Decoder:
    """Return the shared decoder built from the packaged recipe tables."""
    return Decoder()


def list_models() -> list[ModelInfo]:
    return default_decoder().list_models()


def decode_msd(buffer: Buffer, msd: ManufacturerSpecificData | None = None) -> ManufacturerSpecificData:
    return default_decoder().decode_msd(buffer, msd)


def decode_gsm_data(gsm_time: int | None, gsm_data: Buffer) -> list[AdvertisingReport]:
    return default_decoder().decode_gsm_data(gsm_time, gsm_data)


def scan_gsm_data(gsm_time: int | None, gsm_data: Buffer) -> GsmScan:
    return default_decoder().scan_gsm_data(gsm_time, gsm_data)


def register_manufacturer_specific_data_decoder(
    eir_decoders: MutableMapping[int, EirDecoder],
) -> EirDecoder:
    return default_decoder().register_manufacturer_specific_data_decoder(eir_decoders)
