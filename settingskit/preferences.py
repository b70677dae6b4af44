"""Versioned snapshot of user-overridden persistent settings.

Two wire formats are supported:

``binary``
    A sequence of UTF-8 strings, each prefixed with its byte length as a
    4-byte big-endian unsigned integer.  Strings alternate key, value and
    pairs follow sorted key order, with the ``("version", <version>)`` pair
    in its sorted place.

``json``
    An object with a mandatory ``"version"`` string.  Nested objects are
    flattened with dots (``{"a": {"b": 1}}`` -> ``a.b = "1"``).

Empty input in either format decodes to empty preferences at the default
version.  Storage and transport are the host application's business.
"""

from __future__ import annotations

import json
import logging
import struct
from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError, field_validator

from . import config as _config
from .errors import PreferencesError, VersionError
from .kinds import format_string_list
from .version import parse_version

logger = logging.getLogger(__name__)

VERSION_KEY = "version"

_LENGTH = struct.Struct(">I")


class PreferencesFormat(str, Enum):
    BINARY = "binary"
    JSON = "json"


class _PreferencesDocument(BaseModel):
    """JSON document shape: a version plus arbitrary (possibly nested) keys."""

    model_config = ConfigDict(extra="allow", strict=True)

    version: str

    @field_validator("version")
    @classmethod
    def _canonical_version(cls, v: str) -> str:
        return parse_version(v)


class Preferences:
    """Schema version plus a flat ``key -> str`` map."""

    def __init__(self, version: str) -> None:
        try:
            self._version = parse_version(version)
        except VersionError as exc:
            raise PreferencesError(str(exc)) from exc
        self._values: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"Preferences(version={self._version!r}, keys={len(self._values)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Preferences):
            return NotImplemented
        return self._version == other._version and self._values == other._values

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._values))

    @property
    def version(self) -> str:
        return self._version

    def set(self, key: str, value: str) -> None:
        if not isinstance(key, str) or not key:
            raise PreferencesError(f"invalid preference key {key!r}")
        if key == VERSION_KEY:
            raise PreferencesError(f"{VERSION_KEY!r} is a reserved preference key")
        if not isinstance(value, str):
            raise PreferencesError(f"preference {key!r} value must be a string, got {type(value).__name__}")
        self._values[key] = value

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def delete(self, key: str) -> bool:
        """Remove *key*; returns whether it was present."""
        return self._values.pop(key, None) is not None

    def items(self) -> list[tuple[str, str]]:
        return sorted(self._values.items())

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, fmt: PreferencesFormat | str | None = None) -> bytes:
        fmt = _resolve_format(fmt)
        if fmt is PreferencesFormat.JSON:
            document = {VERSION_KEY: self._version, **self._values}
            return json.dumps(document, sort_keys=True, ensure_ascii=False).encode("utf-8")

        chunks = []
        for key, value in sorted([(VERSION_KEY, self._version), *self._values.items()]):
            chunks.append(_pack(key))
            chunks.append(_pack(value))
        return b"".join(chunks)

    @classmethod
    def decode(
        cls,
        data: bytes | str,
        fmt: PreferencesFormat | str | None = None,
        *,
        default_version: str | None = None,
    ) -> "Preferences":
        """Decode a payload produced by :meth:`encode`.

        Raises:
            PreferencesError: If the payload is malformed or its version is
                not a semantic version.
        """
        fmt = _resolve_format(fmt)
        if isinstance(data, str):
            data = data.encode("utf-8")
        version = default_version or _config.engine_config.FALLBACK_VERSION

        if fmt is PreferencesFormat.JSON:
            if not data.strip():
                return cls(version)
            return cls._decode_json(data)
        if not data:
            return cls(version)
        return cls._decode_binary(data, version)

    @classmethod
    def _decode_binary(cls, data: bytes, default_version: str) -> "Preferences":
        strings = _unpack_all(data)
        if len(strings) % 2:
            raise PreferencesError(f"odd number of strings in preferences payload ({len(strings)})")
        pairs = list(zip(strings[0::2], strings[1::2]))

        versions = [value for key, value in pairs if key == VERSION_KEY]
        if len(versions) > 1:
            raise PreferencesError(f"preferences payload has {len(versions)} version entries")
        if versions:
            version = versions[0]
        else:
            version = default_version
            logger.debug("Preferences payload has no version, assuming %s", default_version)

        prefs = cls(version)
        for key, value in pairs:
            if key != VERSION_KEY:
                prefs.set(key, value)
        return prefs

    @classmethod
    def _decode_json(cls, data: bytes) -> "Preferences":
        try:
            document = _PreferencesDocument.model_validate_json(data)
        except PydanticValidationError as exc:
            raise PreferencesError(f"invalid preferences document: {exc}") from exc

        prefs = cls(document.version)
        for key, value in _flatten(document.model_extra or {}, ""):
            prefs.set(key, value)
        return prefs


def _resolve_format(fmt: PreferencesFormat | str | None) -> PreferencesFormat:
    if fmt is None:
        fmt = _config.engine_config.PREFERENCES_FORMAT
    try:
        return PreferencesFormat(fmt)
    except ValueError as exc:
        raise PreferencesError(f"unknown preferences format {fmt!r}") from exc


def _pack(text: str) -> bytes:
    raw = text.encode("utf-8")
    return _LENGTH.pack(len(raw)) + raw


def _unpack_all(data: bytes) -> list[str]:
    strings: list[str] = []
    offset = 0
    while offset < len(data):
        if offset + _LENGTH.size > len(data):
            raise PreferencesError(f"truncated length prefix at byte {offset}")
        (length,) = _LENGTH.unpack_from(data, offset)
        offset += _LENGTH.size
        end = offset + length
        if end > len(data):
            raise PreferencesError(f"truncated string at byte {offset}: want {length}, have {len(data) - offset}")
        try:
            strings.append(data[offset:end].decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise PreferencesError(f"invalid UTF-8 at byte {offset}") from exc
        offset = end
    return strings


def _flatten(values: dict[str, Any], prefix: str) -> Iterator[tuple[str, str]]:
    for key, value in values.items():
        full = prefix + key
        if isinstance(value, dict):
            yield from _flatten(value, full + ".")
        elif isinstance(value, list):
            yield full, format_string_list(_scalar(full, item) for item in value)
        else:
            yield full, _scalar(full, value)


def _scalar(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    raise PreferencesError(f"preference {key!r} has unsupported value {value!r}")
