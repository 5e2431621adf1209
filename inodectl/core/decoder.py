"""Decoder layer used by the public API, the CLI, and host parser integration."""

from __future__ import annotations

import re
from collections.abc import Callable, MutableMapping
from typing import Any

from inodectl.core.dispatch import DispatchTables, model_byte, transports_for_model
from inodectl.core.errors import PayloadFormatError, UnsupportedModelError
from inodectl.core.fields import Buffer, read_u16le
from inodectl.core.gsm import GsmScan, SkippedRecord, decode_gsm_record, scan_gsm_data
from inodectl.core.hci import EirDataType
from inodectl.core.model import AdvertisingReport, DeviceModel, ManufacturerSpecificData, ModelInfo
from inodectl.core.recipe_loader import load_recipe_tables
from inodectl.core.recipes import RecipeTable

EirDecoder = Callable[..., Any]

_HEX_RE = re.compile(r"^[0-9a-f]+$")
_MAX_PAYLOAD_BYTES = 4096
_HOST_TAG_KEYS = ("type", "type_label")


def parse_hex(value: str) -> bytes:
    """Turn user-supplied hex text into bytes, ignoring spaces, colons, and a 0x prefix."""
    normalized = value.strip().lower()
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    normalized = re.sub(r"[\s:_-]", "", normalized)
    if len(normalized) == 0:
        raise PayloadFormatError("Payload must not be empty")
    if len(normalized) % 2 != 0:
        raise PayloadFormatError("Payload must have even-length hex")
    if not _HEX_RE.match(normalized):
        raise PayloadFormatError("Payload must contain only [0-9a-f]")
    payload = bytes.fromhex(normalized)
    if len(payload) > _MAX_PAYLOAD_BYTES:
        raise PayloadFormatError(f"Payload exceeds max size {_MAX_PAYLOAD_BYTES} bytes")
    return payload


class Decoder:
    def __init__(self, *, tables: DispatchTables | None = None) -> None:
        self.tables = tables or load_recipe_tables()

    @property
    def msd_decoders(self) -> RecipeTable:
        return self.tables.msd

    @property
    def gsm_decoders(self) -> RecipeTable:
        return self.tables.gsm

    def list_models(self) -> list[ModelInfo]:
        models: list[ModelInfo] = []
        for model in DeviceModel:
            recipe = self.tables.msd.lookup(model) or self.tables.gsm.lookup(model)
            if recipe is None:
                continue
            models.append(
                ModelInfo(
                    model=model,
                    label=recipe.label,
                    transports=transports_for_model(self.tables, model),
                )
            )
        return models

    def decode_by_model(
        self,
        buffer: Buffer,
        model: int,
        *,
        transport: str = "msd",
        msd: ManufacturerSpecificData | None = None,
    ) -> ManufacturerSpecificData:
        recipe = self.tables.table(transport).lookup(model)
        if recipe is None:
            raise UnsupportedModelError(model, transport)
        return recipe.apply(buffer, msd if msd is not None else ManufacturerSpecificData())

    def decode_msd(
        self,
        buffer: Buffer,
        msd: ManufacturerSpecificData | None = None,
    ) -> ManufacturerSpecificData:
        """Decode one iNode MSD payload.

        A fresh record is tagged with the MSD payload type and the company
        identifier from bytes 0-1; a record supplied by the caller keeps its
        tag and is filled in place.

        Raises `UnsupportedModelError` for an unknown model byte and
        `BufferTooShortError` when the payload is shorter than its recipe needs.
        """
        model = model_byte(buffer)
        recipe = self.tables.msd.lookup(model)
        if recipe is None:
            raise UnsupportedModelError(model, "msd")

        if msd is None:
            msd = ManufacturerSpecificData(company_identifier=read_u16le(buffer, 0))

        return recipe.apply(buffer, msd)

    def decode_gsm_record(
        self,
        record_type: int,
        record_data: Buffer,
    ) -> AdvertisingReport | SkippedRecord:
        return decode_gsm_record(record_type, record_data, self.tables.gsm)

    def scan_gsm_data(self, gsm_time: int | None, gsm_data: Buffer) -> GsmScan:
        return scan_gsm_data(gsm_time, gsm_data, self.tables.gsm)

    def decode_gsm_data(self, gsm_time: int | None, gsm_data: Buffer) -> list[AdvertisingReport]:
        return list(self.scan_gsm_data(gsm_time, gsm_data).reports)

    def register_manufacturer_specific_data_decoder(
        self,
        eir_decoders: MutableMapping[int, EirDecoder],
    ) -> EirDecoder:
        """Install the iNode decoder for the MSD payload type of a host parser.

        Payloads with an unknown model byte are passed on to whatever decoder
        was installed before. Host containers that are plain mappings are
        updated with the decoded fields.
        """
        key = int(EirDataType.ManufacturerSpecificData)
        original = eir_decoders.get(key)
        table = self.tables.msd

        def _decode(buffer: Buffer, msd: Any = None) -> Any:
            recipe = table.lookup(buffer[1]) if len(buffer) > 1 else None

            if recipe is None:
                if original is not None:
                    return original(buffer, msd)
                return msd

            if isinstance(msd, MutableMapping):
                decoded = recipe.apply(buffer, ManufacturerSpecificData()).as_dict()
                for tag in _HOST_TAG_KEYS:
                    decoded.pop(tag, None)
                msd.update(decoded)
                return msd

            if msd is None:
                msd = ManufacturerSpecificData(company_identifier=read_u16le(buffer, 0))
            return recipe.apply(buffer, msd)

        eir_decoders[key] = _decode
        return _decode
