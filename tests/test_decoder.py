from __future__ import annotations

from datetime import datetime, timezone

import pytest

from inodectl.core.decoder import Decoder, parse_hex
from inodectl.core.dispatch import model_byte, transports_for_model
from inodectl.core.errors import BufferTooShortError, PayloadFormatError, UnsupportedModelError
from inodectl.core.model import DeviceModel, ManufacturerSpecificData

CARE_SENSOR_1 = bytes(
    [
        0x06,  # rtto + low battery
        0x91,
        0x23, 0x11,  # groups 0x123, battery code 1
        0x11, 0x00,  # move accelerometer + contact change
        0xE1, 0xC1,  # motion, x=-15, y=15, z=1
        0x19, 0x00,  # 25 degrees
        0x00, 0x00,
        0x5E, 0x5F, 0x00, 0x10,  # 1600000000
        0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08,
    ]
)


@pytest.fixture(scope="module")
def decoder() -> Decoder:
    return Decoder()


def test_decode_care_sensor_payload(decoder: Decoder) -> None:
    msd = decoder.decode_msd(CARE_SENSOR_1)

    assert msd.type == 0xFF
    assert msd.type_label == "ManufacturerSpecificData"
    assert msd.company_identifier == 0x9106
    assert msd.model == DeviceModel.CareSensor1
    assert msd.model_label == "iNode Care Sensor #1"
    assert msd.rtto is True
    assert msd.alarms is not None
    assert msd.alarms.low_battery is True
    assert msd.alarms.move_accelerometer is True
    assert msd.alarms.contact_change is True
    assert msd.groups == 0x123
    assert msd.battery_level == 100
    assert msd.battery_voltage == pytest.approx(2.88)
    assert msd.position is not None
    assert (msd.position.motion, msd.position.x, msd.position.y, msd.position.z) == (True, -15, 15, 1)
    assert msd.temperature == 25
    assert msd.humidity is None
    assert msd.time == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)
    assert msd.signature == bytes(range(1, 9))
    assert msd.input is None


def test_decode_does_not_modify_buffer(decoder: Decoder) -> None:
    buffer = bytearray(CARE_SENSOR_1)
    decoder.decode_msd(buffer)
    assert bytes(buffer) == CARE_SENSOR_1


def test_decode_care_sensor_flags(decoder: Decoder) -> None:
    payload = bytearray(CARE_SENSOR_1)
    payload[0] = 0x0B
    payload[1] = DeviceModel.CareSensor6

    msd = decoder.decode_msd(bytes(payload))
    assert msd.model_label == "iNode Care Sensor #6"
    assert msd.input is True
    assert msd.output is True
    assert msd.temperature == 25


def test_decode_care_sensor_ht(decoder: Decoder) -> None:
    payload = bytearray(CARE_SENSOR_1)
    payload[1] = DeviceModel.CareSensorHT
    payload[8:12] = (6699).to_bytes(2, "little") + (7340).to_bytes(2, "little")

    msd = decoder.decode_msd(bytes(payload))
    assert msd.position is None
    assert msd.temperature == pytest.approx(25.0)
    assert msd.humidity == pytest.approx(50.0)


def test_decode_energy_meter_payload(decoder: Decoder) -> None:
    payload = bytes([0x00, 0x82]) + (100).to_bytes(2, "little") + (5000).to_bytes(4, "little") + bytes(2)
    msd = decoder.decode_msd(payload)

    assert msd.model_label == "iNode Energy Meter"
    assert msd.alarms is not None
    assert msd.alarms.extended is False
    assert msd.average == 6.0
    assert msd.sum == 5.0
    assert msd.battery_voltage == 2.88
    assert msd.groups is None


def test_decode_care_relay(decoder: Decoder) -> None:
    msd = decoder.decode_msd(bytes([0x03, 0xB3]))
    assert msd.model_label == "iNode Care Relay"
    assert msd.rtto is True
    assert msd.output is True
    assert msd.alarms is not None
    assert msd.alarms.low_battery is False


@pytest.mark.parametrize("model", list(DeviceModel))
def test_every_model_sets_model_and_label(decoder: Decoder, model: DeviceModel) -> None:
    msd = decoder.decode_msd(bytes([0x00, model]) + bytes(22))
    assert msd.model == model
    assert msd.model_label
    assert msd.model_label.startswith("iNode ")


def test_unsupported_model_raises(decoder: Decoder) -> None:
    with pytest.raises(UnsupportedModelError) as excinfo:
        decoder.decode_msd(bytes([0x00, 0x01, 0x00]))
    assert excinfo.value.model == 0x01


def test_short_payload_raises_buffer_too_short(decoder: Decoder) -> None:
    with pytest.raises(BufferTooShortError):
        decoder.decode_msd(CARE_SENSOR_1[:10])
    with pytest.raises(BufferTooShortError):
        decoder.decode_msd(b"\x00")


def test_supplied_container_is_augmented_in_place(decoder: Decoder) -> None:
    container = ManufacturerSpecificData(company_identifier=0x1234)
    result = decoder.decode_msd(CARE_SENSOR_1, container)

    assert result is container
    assert container.company_identifier == 0x1234
    assert container.model == DeviceModel.CareSensor1


def test_decode_by_model_uses_requested_table(decoder: Decoder) -> None:
    msd = decoder.decode_by_model(CARE_SENSOR_1, DeviceModel.CareSensor1, transport="gsm")
    assert msd.temperature == 25

    with pytest.raises(UnsupportedModelError):
        decoder.decode_by_model(CARE_SENSOR_1, DeviceModel.Beacon, transport="gsm")


def test_dispatch_reads_model_byte_and_transports(decoder: Decoder) -> None:
    assert model_byte(CARE_SENSOR_1) == DeviceModel.CareSensor1
    assert transports_for_model(decoder.tables, DeviceModel.CareRelay) == ("msd",)
    assert transports_for_model(decoder.tables, 0x00) == ()

    with pytest.raises(BufferTooShortError):
        model_byte(bytes([0x06]))

    with pytest.raises(ValueError):
        decoder.tables.table("lora")


def test_list_models(decoder: Decoder) -> None:
    models = {info.model: info for info in decoder.list_models()}
    assert len(models) == 17
    assert models[DeviceModel.Beacon].transports == ("msd",)
    assert models[DeviceModel.CareSensorHT].transports == ("msd", "gsm")
    assert models[DeviceModel.EnergyMeter].label == "iNode Energy Meter"


def test_register_decoder_chains_to_previous_handler(decoder: Decoder) -> None:
    calls: list[bytes] = []

    def previous(buffer: bytes, msd: object = None) -> str:
        calls.append(bytes(buffer))
        return "previous"

    eir_decoders = {0xFF: previous, 0x09: previous}
    handler = decoder.register_manufacturer_specific_data_decoder(eir_decoders)

    assert eir_decoders[0xFF] is handler
    assert eir_decoders[0x09] is previous

    msd = handler(CARE_SENSOR_1)
    assert isinstance(msd, ManufacturerSpecificData)
    assert msd.model == DeviceModel.CareSensor1
    assert calls == []

    assert handler(bytes([0x4C, 0x00, 0x02, 0x15])) == "previous"
    assert calls == [bytes([0x4C, 0x00, 0x02, 0x15])]


def test_register_decoder_updates_mapping_containers(decoder: Decoder) -> None:
    eir_decoders: dict = {}
    handler = decoder.register_manufacturer_specific_data_decoder(eir_decoders)

    entry = {"type": 0xFF, "type_label": "ManufacturerSpecificData", "company_identifier": 0x9106}
    handler(CARE_SENSOR_1, entry)

    assert entry["company_identifier"] == 0x9106
    assert entry["model_label"] == "iNode Care Sensor #1"
    assert entry["alarms"]["low_battery"] is True
    assert entry["position"] == {"motion": True, "x": -15, "y": 15, "z": 1}

    assert handler(bytes([0x00, 0x01]), {"type": 0xFF}) == {"type": 0xFF}


@pytest.mark.parametrize(
    ("text", "expected"),
    [("06 91", b"\x06\x91"), ("0xAABB", b"\xaa\xbb"), ("01:02:03", b"\x01\x02\x03")],
)
def test_parse_hex(text: str, expected: bytes) -> None:
    assert parse_hex(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "zz"])
def test_parse_hex_rejects_bad_input(text: str) -> None:
    with pytest.raises(PayloadFormatError):
        parse_hex(text)
