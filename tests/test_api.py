from __future__ import annotations

import pytest

from inodectl import api
from inodectl.api import DeviceModel, ManufacturerSpecificData, UnsupportedModelError


def test_public_decode_msd() -> None:
    msd = api.decode_msd(bytes([0x02, 0x80]))
    assert isinstance(msd, ManufacturerSpecificData)
    assert msd.model == DeviceModel.Beacon
    assert msd.model_label == "iNode Beacon"
    assert msd.rtto is True
    assert msd.as_dict() == {
        "type": 0xFF,
        "type_label": "ManufacturerSpecificData",
        "company_identifier": 0x8002,
        "model": DeviceModel.Beacon,
        "model_label": "iNode Beacon",
        "rtto": True,
        "alarms": {"low_battery": False},
    }


def test_public_decode_msd_unknown_model() -> None:
    with pytest.raises(UnsupportedModelError):
        api.decode_msd(bytes([0x00, 0x7F]))


def test_public_gsm_decoding() -> None:
    record = bytes([0x00, 0x9A]) + bytes([0x10, 0x20, 0x30, 0x40, 0x50, 0x60]) + b"T".ljust(16, b"\x00")
    record += bytes(4) + bytes([0x90, 0x01]) + bytes(2) + bytes([0xD8, 0, 0, 0])

    reports = api.decode_gsm_data(0, bytes([0x01, len(record)]) + record)
    assert len(reports) == 1
    assert reports[0].address == "60:50:40:30:20:10"
    assert reports[0].local_name == "T"
    assert reports[0].rssi == -40
    assert reports[0].msd is not None
    assert reports[0].msd.temperature == 25.0

    scan = api.scan_gsm_data(0, bytes([0x01, 5]))
    assert scan.reports == ()
    assert scan.truncated is True


def test_public_registration_hook() -> None:
    eir_decoders: dict = {}
    handler = api.register_manufacturer_specific_data_decoder(eir_decoders)
    assert eir_decoders[0xFF] is handler
    assert handler(bytes([0x00, 0xB7])).model_label == "iNode GSM"


def test_default_decoder_is_shared() -> None:
    assert api.default_decoder() is api.default_decoder()
    assert len(api.list_models()) == 17
