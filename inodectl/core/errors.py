"""Domain-specific errors for inodectl."""

from __future__ import annotations


class InodeError(Exception):
    """Base error for inodectl."""


class RecipeLoadError(InodeError):
    """Raised when reading a recipe table fails."""


class RecipeValidationError(InodeError):
    """Raised when a recipe table does not conform to schema or semantics."""


class PayloadFormatError(InodeError):
    """Raised when user-supplied payload text cannot be turned into bytes."""


class DecodeError(InodeError):
    """Base decode error."""


class UnsupportedModelError(DecodeError):
    """Raised when the device model byte has no recipe in the requested table."""

    def __init__(self, model: int, transport: str = "msd") -> None:
        super().__init__(
            f"Cannot decode iNode {transport.upper()}: '{model}' is not a valid device model!"
        )
        self.model = model
        self.transport = transport


class BufferTooShortError(DecodeError):
    """Raised when a field read would run past the end of the buffer."""

    def __init__(self, offset: int, size: int, length: int) -> None:
        super().__init__(
            f"Buffer too short: need {size} byte(s) at offset {offset}, buffer has {length}"
        )
        self.offset = offset
        self.size = size
        self.length = length


class FramingTruncatedError(DecodeError):
    """Raised when a GSM record declares more bytes than the batch has left."""

    def __init__(self, offset: int, declared: int, remaining: int) -> None:
        super().__init__(
            f"GSM record at offset {offset} declares {declared} byte(s), only {remaining} remain"
        )
        self.offset = offset
        self.declared = declared
        self.remaining = remaining


class RecordDecodeError(DecodeError):
    """Raised when a single GSM record fails to decode."""

    def __init__(self, offset: int, message: str) -> None:
        super().__init__(f"GSM record at offset {offset} could not be decoded: {message}")
        self.offset = offset
