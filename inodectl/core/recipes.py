"""Decode recipes: a fixed skeleton per layout with swappable field decoders."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from inodectl.core import fields
from inodectl.core.fields import UNUSED, Buffer, FieldDecoder
from inodectl.core.model import DeviceModel, ManufacturerSpecificData


@dataclass(frozen=True)
class Step:
    """One field decoder bound to its offsets.

    `trim` drops that many bytes from the end of the buffer before decoding,
    for fields whose presence depends on the buffer length.
    """

    decoder: FieldDecoder
    args: tuple[int, ...] = ()
    trim: int = 0

    @property
    def name(self) -> str:
        return self.decoder.__name__

    def __call__(self, buffer: Buffer, msd: ManufacturerSpecificData) -> None:
        if self.trim:
            buffer = buffer[: max(len(buffer) - self.trim, 0)]
        self.decoder(buffer, *self.args, msd)


@dataclass(frozen=True)
class AlarmLayout:
    battery: int = UNUSED
    extended: int = UNUSED


@dataclass(frozen=True)
class Layout:
    """Offsets shared by every recipe built on the same skeleton.

    For care sensors, a skeleton field left as None is synthesized from the
    sensor defaults instead of being read from the buffer.
    """

    name: str
    kind: str
    rtto: int = 0
    alarms: AlarmLayout = AlarmLayout()
    energy_meter: int | None = None
    trim: int = 0
    groups: int | None = None
    battery: int | None = None
    battery_shift: int = 12
    position: int | None = None
    value1: int | None = None
    value2: int | None = None
    time: int | None = None
    signature: int | None = None


@dataclass(frozen=True)
class Strategies:
    position: str | None = None
    value1: str | None = None
    value2: str | None = None
    flags: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class Recipe:
    model: DeviceModel
    label: str
    steps: tuple[Step, ...]

    def apply(self, buffer: Buffer, msd: ManufacturerSpecificData) -> ManufacturerSpecificData:
        msd.model = self.model
        msd.model_label = self.label
        for step in self.steps:
            step(buffer, msd)
        return msd


def _care_sensor_steps(layout: Layout, strategies: Strategies) -> list[Step]:
    steps: list[Step] = []

    if layout.groups is None:
        steps.append(Step(fields.default_groups))
    else:
        steps.append(Step(fields.decode_groups, (layout.groups,)))

    if layout.battery is None:
        steps.append(Step(fields.default_battery_level))
    else:
        steps.append(Step(fields.decode_battery_level, (layout.battery, layout.battery_shift)))

    if strategies.position and layout.position is not None:
        steps.append(Step(fields.POSITION_DECODERS[strategies.position], (layout.position,)))
    if strategies.value1 and layout.value1 is not None:
        steps.append(Step(fields.VALUE_DECODERS[strategies.value1], (layout.value1,)))
    if strategies.value2 and layout.value2 is not None:
        steps.append(Step(fields.VALUE_DECODERS[strategies.value2], (layout.value2,)))

    if layout.time is None:
        steps.append(Step(fields.default_time))
    else:
        steps.append(Step(fields.decode_time, (layout.time,)))

    if layout.signature is None:
        steps.append(Step(fields.default_signature))
    else:
        steps.append(Step(fields.decode_signature, (layout.signature,)))

    return steps


def build_recipe(model: DeviceModel, label: str, layout: Layout, strategies: Strategies) -> Recipe:
    steps = [
        Step(fields.decode_rtto, (layout.rtto,)),
        Step(fields.decode_alarms, (layout.alarms.battery, layout.alarms.extended)),
    ]

    if layout.kind == "energy_meter" and layout.energy_meter is not None:
        steps.append(Step(fields.decode_energy_meter, (layout.energy_meter,), trim=layout.trim))
    elif layout.kind == "care_sensor":
        steps.extend(_care_sensor_steps(layout, strategies))

    for flag, offset in strategies.flags:
        steps.append(Step(fields.FLAG_DECODERS[flag], (offset,)))

    return Recipe(model=model, label=label, steps=tuple(steps))


class RecipeTable(Mapping[DeviceModel, Recipe]):
    """Immutable device model to recipe mapping for one transport."""

    def __init__(self, transport: str, recipes: Mapping[DeviceModel, Recipe]) -> None:
        self.transport = transport
        self._recipes = MappingProxyType(dict(recipes))

    def __getitem__(self, model: DeviceModel) -> Recipe:
        return self._recipes[model]

    def __iter__(self) -> Iterator[DeviceModel]:
        return iter(self._recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def __repr__(self) -> str:
        return f"RecipeTable({self.transport!r}, {len(self)} models)"

    def lookup(self, model_byte: int) -> Recipe | None:
        """Return the recipe for a raw model byte, or None when it is not in this table."""
        return self._recipes.get(model_byte)
