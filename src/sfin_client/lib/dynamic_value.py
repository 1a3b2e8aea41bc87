"""DynamicValue — a tagged union over JSON values.

Used for the open-ended `extra` bag on transactions, where providers put
whatever metadata they like. Decoding tries the variants in a fixed order
(null, bool, int, float, string, array, object) so that `true` never
becomes 1 and `42` never becomes 42.0.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class DataCorruptedError(ValueError):
    """Raised when a raw value matches none of the DynamicValue variants."""


class InvalidValueError(ValueError):
    """Raised when a DynamicValue cannot be encoded back to JSON."""


class ValueKind(Enum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


# Payload type expected for each tag
_PAYLOAD_TYPES: dict[ValueKind, type | None] = {
    ValueKind.NULL: None,
    ValueKind.BOOL: bool,
    ValueKind.INT: int,
    ValueKind.FLOAT: float,
    ValueKind.STRING: str,
    ValueKind.ARRAY: tuple,
    ValueKind.OBJECT: dict,
}


@dataclass(frozen=True)
class DynamicValue:
    """One JSON value with an explicit kind tag.

    Arrays are stored as tuples of DynamicValue, objects as dicts from str
    to DynamicValue.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def null(cls) -> "DynamicValue":
        return cls(ValueKind.NULL)

    @classmethod
    def decode(cls, raw: Any) -> "DynamicValue":
        """Build a DynamicValue from a parsed JSON value (as from json.loads)."""
        try:
            return cls._decode(raw)
        except RecursionError as e:
            raise DataCorruptedError("Value is nested too deeply") from e

    @classmethod
    def _decode(cls, raw: Any) -> "DynamicValue":
        if raw is None:
            return cls(ValueKind.NULL)
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, int):
            return cls(ValueKind.INT, raw)
        if isinstance(raw, float):
            return cls(ValueKind.FLOAT, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(ValueKind.ARRAY, tuple(cls._decode(item) for item in raw))
        if isinstance(raw, dict):
            items = {}
            for key, item in raw.items():
                if not isinstance(key, str):
                    raise DataCorruptedError(f"Object key {key!r} is not a string")
                items[key] = cls._decode(item)
            return cls(ValueKind.OBJECT, items)
        raise DataCorruptedError(
            f"Cannot decode {type(raw).__name__} as a DynamicValue"
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "DynamicValue":
        return cls.decode(json.loads(text))

    def encode(self) -> Any:
        """Return the plain JSON-compatible Python value for this tag."""
        kind = self.kind
        if not isinstance(kind, ValueKind):
            raise InvalidValueError(f"Unsupported value kind {kind!r}")
        expected = _PAYLOAD_TYPES[kind]
        if expected is None:
            if self.value is not None:
                raise InvalidValueError("NULL value carries a payload")
            return None
        # bool is a subclass of int, so INT must reject it explicitly
        if not isinstance(self.value, expected) or (
            kind is not ValueKind.BOOL and isinstance(self.value, bool)
        ):
            raise InvalidValueError(
                f"{kind.name} value carries a {type(self.value).__name__} payload"
            )
        if kind is ValueKind.ARRAY:
            return [_encode_item(item) for item in self.value]
        if kind is ValueKind.OBJECT:
            return {key: _encode_item(item) for key, item in self.value.items()}
        return self.value

    def to_json(self) -> str:
        return json.dumps(self.encode(), ensure_ascii=False)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def as_bool(self) -> bool | None:
        return self.value if self.kind is ValueKind.BOOL else None

    def as_int(self) -> int | None:
        return self.value if self.kind is ValueKind.INT else None

    def as_float(self) -> float | None:
        if self.kind is ValueKind.FLOAT:
            return self.value
        if self.kind is ValueKind.INT:
            return float(self.value)
        return None

    def as_str(self) -> str | None:
        return self.value if self.kind is ValueKind.STRING else None

    def as_list(self) -> list[DynamicValue] | None:
        return list(self.value) if self.kind is ValueKind.ARRAY else None

    def as_dict(self) -> dict[str, DynamicValue] | None:
        return dict(self.value) if self.kind is ValueKind.OBJECT else None

    def __str__(self) -> str:
        if self.kind is ValueKind.STRING:
            return self.value
        if self.kind is ValueKind.NULL:
            return "null"
        return self.to_json()


def _encode_item(item: Any) -> Any:
    if not isinstance(item, DynamicValue):
        raise InvalidValueError(f"Nested {type(item).__name__} is not a DynamicValue")
    return item.encode()
