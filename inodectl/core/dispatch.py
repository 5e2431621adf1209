"""Transport-specific dispatch from the device model byte to a recipe."""

from __future__ import annotations

from dataclasses import dataclass

from inodectl.core.fields import Buffer, read_u8
from inodectl.core.recipes import RecipeTable

MODEL_OFFSET = 1
TRANSPORTS = ("msd", "gsm")


@dataclass(frozen=True)
class DispatchTables:
    msd: RecipeTable
    gsm: RecipeTable

    def table(self, transport: str) -> RecipeTable:
        if transport == "msd":
            return self.msd
        if transport == "gsm":
            return self.gsm
        raise ValueError(f"Unknown transport '{transport}'")


def model_byte(buffer: Buffer) -> int:
    return read_u8(buffer, MODEL_OFFSET)


def transports_for_model(tables: DispatchTables, model: int) -> tuple[str, ...]:
    return tuple(t for t in TRANSPORTS if tables.table(t).lookup(model) is not None)
