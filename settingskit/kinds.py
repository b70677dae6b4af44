"""Setting kinds, their string codecs, and the built-in value types.

Every storable kind has exactly one canonical string form.  Profiles compare
canonical strings to decide whether a write changed anything, and
preferences persist nothing but canonical strings.

Value types (``String``, ``Bool``, ``Int``, ``Uint``, ``Duration``,
``StringList``) are what descriptor fields are annotated with.  They satisfy
the capability protocols below, which is how the scanner tells a leaf
setting from anything else.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Protocol, runtime_checkable

from pydantic_core import core_schema


class Kind(Enum):
    INVALID = "invalid"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    STRING = "string"
    DURATION = "duration"
    STRING_LIST = "string_list"
    CUSTOM = "custom"
    SETTINGS = "settings"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class Marshaller(Protocol):
    """Encodes a setting value to bytes."""

    def marshal_setting(self) -> bytes: ...


@runtime_checkable
class Unmarshaller(Protocol):
    """Builds a setting value from bytes (implemented as a classmethod)."""

    def unmarshal_setting(self, data: bytes) -> Any: ...


@runtime_checkable
class KindProvider(Protocol):
    """Reports the setting kind of a value type (implemented as a classmethod)."""

    def setting_kind(self) -> Kind: ...


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_INT = re.compile(r"[+-]?[0-9]+")
_UINT = re.compile(r"\+?[0-9]+")
_UINT_MAX = 2**64 - 1

# Microseconds per unit; "ms" must precede "m" in the alternation.
_DURATION_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}
_DURATION_PART = re.compile(r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION = re.compile(r"(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:ns|us|µs|μs|ms|s|m|h))+")


def parse_bool(raw: str) -> bool:
    if raw == "":
        return False
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"invalid bool: {raw!r}")


def parse_int(raw: str) -> int:
    if raw == "":
        return 0
    if not _INT.fullmatch(raw):
        raise ValueError(f"invalid int: {raw!r}")
    return int(raw)


def parse_uint(raw: str) -> int:
    if raw == "":
        return 0
    if not _UINT.fullmatch(raw):
        raise ValueError(f"invalid uint: {raw!r}")
    value = int(raw)
    if value > _UINT_MAX:
        raise ValueError(f"uint out of range: {raw!r}")
    return value


def parse_duration(raw: str) -> timedelta:
    """Parse a Go-style duration such as ``1h30m``, ``250ms`` or ``-1.5s``."""
    text = raw.strip()
    if text in ("", "0", "+0", "-0"):
        return timedelta(0)

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if not _DURATION.fullmatch(text):
        raise ValueError(f"invalid duration: {raw!r}")

    total = Decimal(0)
    try:
        for number, unit in _DURATION_PART.findall(text):
            total += Decimal(number) * _DURATION_UNITS[unit]
    except InvalidOperation as exc:
        raise ValueError(f"invalid duration: {raw!r}") from exc
    return timedelta(microseconds=sign * int(total.to_integral_value()))


def _fraction(whole: int, part: int, digits: int) -> str:
    if not part:
        return str(whole)
    return f"{whole}.{part:0{digits}d}".rstrip("0")


def format_duration(value: timedelta) -> str:
    """Format like Go's ``time.Duration.String`` (``1h0m0s``, ``1.5s``, ``250ms``)."""
    total = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    us = abs(total)

    if us < 1_000:
        return f"{sign}{us}µs"
    if us < 1_000_000:
        return f"{sign}{_fraction(us // 1_000, us % 1_000, 3)}ms"

    hours, us = divmod(us, 3_600_000_000)
    minutes, us = divmod(us, 60_000_000)
    seconds = _fraction(us // 1_000_000, us % 1_000_000, 6) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def parse_string_list(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def format_string_list(items: Iterable[Any]) -> str:
    return ",".join(str(item).strip() for item in items if str(item).strip())


def parse_as(kind: Kind, raw: str) -> Any:
    """Decode a canonical or user-supplied string into a typed value.

    Raises:
        ValueError: If *raw* is not valid for *kind*.
    """
    if kind is Kind.BOOL:
        return parse_bool(raw)
    if kind is Kind.INT:
        return parse_int(raw)
    if kind is Kind.UINT:
        return parse_uint(raw)
    if kind in (Kind.STRING, Kind.CUSTOM):
        return raw
    if kind is Kind.DURATION:
        return parse_duration(raw)
    if kind is Kind.STRING_LIST:
        return parse_string_list(raw)
    raise ValueError(f"kind {kind} cannot hold a value")


def _format_integer(kind: Kind, value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(int(value))
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return str(int(value))
    raise ValueError(f"{kind} requires an integer, got {value!r}")


def format_as(kind: Kind, value: Any) -> str:
    """Return the canonical string for a typed value of *kind*."""
    if kind is Kind.BOOL:
        return "true" if value else "false"
    if kind in (Kind.INT, Kind.UINT):
        return _format_integer(kind, value)
    if kind in (Kind.STRING, Kind.CUSTOM):
        return str(value)
    if kind is Kind.DURATION:
        return format_duration(value)
    if kind is Kind.STRING_LIST:
        if isinstance(value, str):
            return format_string_list(parse_string_list(value))
        return format_string_list(value)
    raise ValueError(f"kind {kind} cannot hold a value")


def to_raw(kind: Kind, value: Any) -> str:
    """Turn whatever a caller passed to ``Profile.set`` into a raw string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, Marshaller):
        return value.marshal_setting().decode("utf-8")
    try:
        return format_as(kind, value)
    except (TypeError, AttributeError) as exc:
        raise ValueError(f"cannot use {type(value).__name__} as {kind}") from exc


def is_zero(kind: Kind, raw: str) -> bool:
    """True when *raw* is the zero placeholder of *kind* (``""``, ``"0"``...)."""
    if raw == "":
        return True
    try:
        value = parse_as(kind, raw)
    except ValueError:
        return False
    return not value


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

class _SettingValue(ABC):
    """Shared plumbing: bytes codec via the canonical string and pydantic hooks."""

    @classmethod
    @abstractmethod
    def setting_kind(cls) -> Kind: ...

    def marshal_setting(self) -> bytes:
        return format_as(self.setting_kind(), self).encode("utf-8")

    @classmethod
    def unmarshal_setting(cls, data: bytes) -> Any:
        return cls(parse_as(cls.setting_kind(), data.decode("utf-8")))

    @classmethod
    def coerce(cls, value: Any) -> Any:
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, (str, bytes)):
            data = value.encode("utf-8") if isinstance(value, str) else value
            return cls.unmarshal_setting(data)
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class String(_SettingValue, str):
    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.STRING

    def marshal_setting(self) -> bytes:
        return str(self).encode("utf-8")

    @classmethod
    def unmarshal_setting(cls, data: bytes) -> "String":
        return cls(data.decode("utf-8"))


class Bool(_SettingValue, int):
    def __new__(cls, value: Any = False) -> "Bool":
        return super().__new__(cls, 1 if value else 0)

    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.BOOL

    def __str__(self) -> str:
        return "true" if self else "false"

    def __repr__(self) -> str:
        return f"Bool({bool(self)})"


class Int(_SettingValue, int):
    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.INT

    def __repr__(self) -> str:
        return f"Int({int(self)})"


class Uint(_SettingValue, int):
    def __new__(cls, value: Any = 0) -> "Uint":
        number = int(value)
        if number < 0 or number > _UINT_MAX:
            raise ValueError(f"uint out of range: {value!r}")
        return super().__new__(cls, number)

    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.UINT

    def __repr__(self) -> str:
        return f"Uint({int(self)})"


class Duration(_SettingValue, timedelta):
    def __new__(cls, *args: Any, **kwargs: Any) -> "Duration":
        if len(args) == 1 and not kwargs and isinstance(args[0], timedelta):
            td = args[0]
            return super().__new__(cls, days=td.days, seconds=td.seconds, microseconds=td.microseconds)
        return super().__new__(cls, *args, **kwargs)

    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.DURATION

    @classmethod
    def coerce(cls, value: Any) -> "Duration":
        # Bare numbers are seconds, not timedelta's positional days.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return cls(seconds=value)
        return super().coerce(value)

    def __str__(self) -> str:
        return format_duration(self)

    def __repr__(self) -> str:
        return f"Duration({format_duration(self)!r})"


class StringList(_SettingValue, tuple):
    def __new__(cls, items: Iterable[Any] = ()) -> "StringList":
        if isinstance(items, str):
            items = parse_string_list(items)
        return super().__new__(cls, (str(item).strip() for item in items if str(item).strip()))

    @classmethod
    def setting_kind(cls) -> Kind:
        return Kind.STRING_LIST

    def __str__(self) -> str:
        return format_string_list(self)

    def __repr__(self) -> str:
        return f"StringList({list(self)!r})"
