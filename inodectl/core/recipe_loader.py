"""Recipe table loading and validation for the YAML-described device models."""

from __future__ import annotations

import json
import logging
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from inodectl.core import fields
from inodectl.core.dispatch import DispatchTables
from inodectl.core.errors import RecipeLoadError, RecipeValidationError
from inodectl.core.fields import UNUSED
from inodectl.core.model import DeviceModel
from inodectl.core.recipes import AlarmLayout, Layout, Recipe, RecipeTable, Strategies, build_recipe

LOGGER = logging.getLogger(__name__)

_LAYOUT_SLOTS = ("position", "value1", "value2")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise RecipeValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("inodectl.schemas").joinpath("recipe.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _packaged_table_path(transport: str) -> Traversable:
    return resources.files("inodectl.recipes").joinpath(f"{transport}.yaml")


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RecipeLoadError(f"Could not read recipe table {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise RecipeValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise RecipeValidationError(f"Recipe table {path} must contain a mapping at root")
    return loaded


def _build_layout(name: str, spec: dict[str, Any]) -> Layout:
    alarms = spec.get("alarms", {})
    return Layout(
        name=name,
        kind=spec["kind"],
        rtto=spec.get("rtto", 0),
        alarms=AlarmLayout(
            battery=alarms.get("battery", UNUSED),
            extended=alarms.get("extended", UNUSED),
        ),
        energy_meter=spec.get("energy_meter"),
        trim=spec.get("trim", 0),
        groups=spec.get("groups"),
        battery=spec.get("battery"),
        battery_shift=spec.get("battery_shift", 12),
        position=spec.get("position"),
        value1=spec.get("value1"),
        value2=spec.get("value2"),
        time=spec.get("time"),
        signature=spec.get("signature"),
    )


def _resolve_model(name: str, source: Path | Traversable) -> DeviceModel:
    try:
        return DeviceModel[name]
    except KeyError:
        raise RecipeValidationError(f"Unknown device model '{name}' in {source}") from None


def _build_strategies(
    model_name: str,
    spec: dict[str, Any],
    layout: Layout,
    source: Path | Traversable,
) -> Strategies:
    context = f"{model_name} in {source}"

    for slot in _LAYOUT_SLOTS:
        decoder_name = spec.get(slot)
        if decoder_name is None:
            continue
        known = fields.POSITION_DECODERS if slot == "position" else fields.VALUE_DECODERS
        if decoder_name not in known:
            allowed = ", ".join(sorted(known))
            raise RecipeValidationError(
                f"Unknown {slot} decoder '{decoder_name}' for {context}. Allowed: {allowed}"
            )
        if layout.kind != "care_sensor" or getattr(layout, slot) is None:
            raise RecipeValidationError(
                f"Layout '{layout.name}' has no {slot} slot for {context}"
            )

    flags: list[tuple[str, int]] = []
    for flag, offset in spec.get("flags", {}).items():
        if flag not in fields.FLAG_DECODERS:
            allowed = ", ".join(sorted(fields.FLAG_DECODERS))
            raise RecipeValidationError(f"Unknown flag '{flag}' for {context}. Allowed: {allowed}")
        flags.append((flag, int(offset)))

    return Strategies(
        position=spec.get("position"),
        value1=spec.get("value1"),
        value2=spec.get("value2"),
        flags=tuple(flags),
    )


def _build_table(doc: dict[str, Any], source: Path | Traversable, validator: Any) -> RecipeTable:
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise RecipeValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    layouts = {name: _build_layout(name, spec) for name, spec in doc["layouts"].items()}

    recipes: dict[DeviceModel, Recipe] = {}
    for model_name, model_spec in doc["models"].items():
        model = _resolve_model(model_name, source)
        layout = layouts.get(model_spec["layout"])
        if layout is None:
            raise RecipeValidationError(
                f"Unknown layout '{model_spec['layout']}' for {model_name} in {source}"
            )
        strategies = _build_strategies(model_name, model_spec, layout, source)
        recipes[model] = build_recipe(model, model_spec["label"], layout, strategies)

    return RecipeTable(doc["transport"], recipes)


def load_recipe_table(path: Path | Traversable, validator: Any = None) -> RecipeTable:
    doc = _read_yaml(path)
    if validator is None:
        validator = _load_schema_validator()
    table = _build_table(doc, path, validator)
    LOGGER.debug("Loaded %d %s recipe(s) from %s", len(table), table.transport, path)
    return table


def load_recipe_tables(
    msd_path: Path | Traversable | None = None,
    gsm_path: Path | Traversable | None = None,
) -> DispatchTables:
    validator = _load_schema_validator()
    msd = load_recipe_table(msd_path or _packaged_table_path("msd"), validator)
    gsm = load_recipe_table(gsm_path or _packaged_table_path("gsm"), validator)

    if msd.transport != "msd":
        raise RecipeValidationError(f"Expected an 'msd' recipe table, got '{msd.transport}'")
    if gsm.transport != "gsm":
        raise RecipeValidationError(f"Expected a 'gsm' recipe table, got '{gsm.transport}'")

    for model in gsm:
        if gsm[model].label != msd.get(model, gsm[model]).label:
            raise RecipeValidationError(
                f"Model {model.name} is labelled differently in the msd and gsm tables"
            )

    return DispatchTables(msd=msd, gsm=gsm)
