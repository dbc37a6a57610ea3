"""Config types for layout-driven pattern construction.

A layout describes a record format as plain data, so the same YAML/JSON
file can drive decoding, encoding and size queries without any Python
code. Config-driven construction path:
  dict → parse_layout_config() → LayoutConfig → Registry.load_pattern() → Pattern

Relationship to runtime types:

| Config type     | Runtime pattern                          |
|-----------------|------------------------------------------|
| StructConfig    | nested AndThen ending in Const(record)   |
| LeafConfig      | whatever the registered factory returns  |
| BytesConfig     | Bytes                                    |
| Utf8Config      | utf8(Bytes)                              |
| RepeatConfig    | Repeat                                   |
| SwitchConfig    | Branch                                   |
| ConstConfig     | Const                                    |

Example layout::

    type: struct
    fields:
      - {name: tag, type: u8}
      - {name: length, type: u16be}
      - {name: payload, type: bytes, size: {field: length}}
      - {name: checksum, type: u8}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ═══════════════════════════════════════════════════════════════════════════════
# Config types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FieldRef:
    """The decoded value of an earlier field, looked up by name."""

    field: str


# A size or count: fixed in the layout, or taken from an earlier field.
type SizeConfig = int | FieldRef


@dataclass(frozen=True, slots=True)
class LeafConfig:
    """Reference to a registered leaf type with its configuration."""

    type_name: str
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BytesConfig:
    """Raw bytes of a fixed or field-derived size."""

    size: SizeConfig


@dataclass(frozen=True, slots=True)
class Utf8Config:
    """UTF-8 text occupying a fixed or field-derived number of bytes."""

    size: SizeConfig


@dataclass(frozen=True, slots=True)
class RepeatConfig:
    """``count`` consecutive elements. Value: a list."""

    count: SizeConfig
    element: LayoutConfig


@dataclass(frozen=True, slots=True)
class SwitchConfig:
    """Exactly one alternative, chosen by the value of field ``on``."""

    on: str
    cases: tuple[tuple[Any, LayoutConfig], ...]
    default: LayoutConfig | None = None


@dataclass(frozen=True, slots=True)
class ConstConfig:
    """A fixed value that occupies no bytes."""

    value: Any


@dataclass(frozen=True, slots=True)
class FieldConfig:
    """One named field of a struct."""

    name: str
    type: LayoutConfig


@dataclass(frozen=True, slots=True)
class StructConfig:
    """Named fields in declared order. Value: a dict.

    A field may refer to any field declared before it, in this struct or
    in an enclosing one.
    """

    fields: tuple[FieldConfig, ...]


type LayoutConfig = (
    StructConfig
    | LeafConfig
    | BytesConfig
    | Utf8Config
    | RepeatConfig
    | SwitchConfig
    | ConstConfig
)


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing (dict → config types)
# ═══════════════════════════════════════════════════════════════════════════════

# Type names with built-in structure; every other name is a registered leaf.
BUILT_IN_TYPES = frozenset({"struct", "bytes", "utf8", "repeat", "switch", "const"})


class ConfigParseError(Exception):
    """Error parsing a layout dict into config types."""


def parse_layout_config(data: dict[str, Any] | str) -> LayoutConfig:
    """Parse a layout dict into a LayoutConfig.

    This is the main entry point for layout loading. A bare string is
    shorthand for ``{type: <string>}``.

    Raises:
        ConfigParseError: If the dict is malformed.
    """
    if isinstance(data, str):
        return _parse_type({"type": data}, "layout")
    if not isinstance(data, dict):
        msg = f"expected dict, got {type(data).__name__}"
        raise ConfigParseError(msg)
    return _parse_type(data, "layout")


def _parse_type(data: dict[str, Any], where: str) -> LayoutConfig:
    """Parse any type dict, dispatching on its 'type' discriminant."""
    type_name = data.get("type")
    if type_name is None:
        msg = f"{where} missing required field 'type'"
        raise ConfigParseError(msg)
    if not isinstance(type_name, str):
        msg = f"{where} 'type' must be a string, got {type(type_name).__name__}"
        raise ConfigParseError(msg)

    match type_name:
        case "struct":
            return _parse_struct(data, where)
        case "bytes":
            return BytesConfig(size=_parse_size(data, "size", where))
        case "utf8":
            return Utf8Config(size=_parse_size(data, "size", where))
        case "repeat":
            if "element" not in data:
                msg = f"{where}: repeat missing required field 'element'"
                raise ConfigParseError(msg)
            return RepeatConfig(
                count=_parse_size(data, "count", where),
                element=_parse_nested(data["element"], f"{where}.element"),
            )
        case "switch":
            return _parse_switch(data, where)
        case "const":
            if "value" not in data:
                msg = f"{where}: const missing required field 'value'"
                raise ConfigParseError(msg)
            return ConstConfig(value=data["value"])

    config = {k: v for k, v in data.items() if k not in ("type", "name")}
    return LeafConfig(type_name=type_name, config=config)


def _parse_nested(data: Any, where: str) -> LayoutConfig:
    if isinstance(data, str):
        return _parse_type({"type": data}, where)
    if not isinstance(data, dict):
        msg = f"{where} must be a dict or a type name, got {type(data).__name__}"
        raise ConfigParseError(msg)
    return _parse_type(data, where)


def _parse_struct(data: dict[str, Any], where: str) -> StructConfig:
    raw_fields = data.get("fields")
    if raw_fields is None:
        msg = f"{where}: struct missing required field 'fields'"
        raise ConfigParseError(msg)
    if not isinstance(raw_fields, list):
        msg = f"{where}: 'fields' must be a list, got {type(raw_fields).__name__}"
        raise ConfigParseError(msg)

    fields: list[FieldConfig] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_fields):
        if not isinstance(raw, dict):
            msg = f"{where}.fields[{i}] must be a dict, got {type(raw).__name__}"
            raise ConfigParseError(msg)
        name = raw.get("name")
        if not isinstance(name, str) or not name:
            msg = f"{where}.fields[{i}] needs a non-empty string 'name'"
            raise ConfigParseError(msg)
        if name in seen:
            msg = f"{where}: duplicate field name {name!r}"
            raise ConfigParseError(msg)
        seen.add(name)
        fields.append(FieldConfig(name=name, type=_parse_type(raw, f"{where}.{name}")))
    return StructConfig(fields=tuple(fields))


def _parse_switch(data: dict[str, Any], where: str) -> SwitchConfig:
    on = data.get("on")
    if not isinstance(on, str):
        msg = f"{where}: switch needs a string field name in 'on'"
        raise ConfigParseError(msg)

    raw_cases = data.get("cases")
    if not isinstance(raw_cases, dict):
        msg = f"{where}: switch 'cases' must be a dict"
        raise ConfigParseError(msg)
    cases = tuple(
        (key, _parse_nested(value, f"{where}.cases[{key!r}]"))
        for key, value in raw_cases.items()
    )

    default = None
    if "default" in data:
        default = _parse_nested(data["default"], f"{where}.default")

    return SwitchConfig(on=on, cases=cases, default=default)


def _parse_size(data: dict[str, Any], key: str, where: str) -> SizeConfig:
    """Parse a size/count: a non-negative int or ``{field: name}``."""
    if key not in data:
        msg = f"{where} missing required field {key!r}"
        raise ConfigParseError(msg)
    value = data[key]
    if isinstance(value, bool):
        msg = f"{where}: {key!r} must be an int or {{field: name}}, got bool"
        raise ConfigParseError(msg)
    if isinstance(value, int):
        if value < 0:
            msg = f"{where}: {key!r} must be non-negative, got {value}"
            raise ConfigParseError(msg)
        return value
    if isinstance(value, dict):
        ref = value.get("field")
        if isinstance(ref, str) and len(value) == 1:
            return FieldRef(field=ref)
    msg = f"{where}: {key!r} must be an int or {{field: name}}, got {value!r}"
    raise ConfigParseError(msg)
