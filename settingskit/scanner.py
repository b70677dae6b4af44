"""Declaration scanner: turns a ``Settings`` descriptor into a blueprint.

Descriptors are pydantic models.  Each public field becomes a setting spec::

    class Server(Settings):
        host: String = setting("localhost", desc="Bind address")
        port: Uint = setting("8080", mutation="once", save=True)
        debug: Bool = setting(mutation="mutable")
        tls: TLS = group()

Leaf field types must implement the ``Marshaller`` and ``Unmarshaller``
capabilities (and usually ``KindProvider``); nested groups are ``Settings``
subclasses.  Subclasses customise the result by overriding
:meth:`Settings.blueprint`, calling ``super().blueprint()`` first.
"""

from __future__ import annotations

import logging
import types
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field
from pydantic.fields import FieldInfo

from .blueprint import Blueprint
from .errors import DefinitionError, SettingsError
from .kinds import Kind, KindProvider, Marshaller, Unmarshaller, is_zero, to_raw
from .mode import detect_execution_mode
from .setting import ENGLISH, Mutability, SettingSpec

logger = logging.getLogger(__name__)

_META = "settingskit"

_MUTATIONS = {
    "once": Mutability.ONCE,
    "mutable": Mutability.MUTABLE,
}


class Settings(BaseModel):
    """Base class for settings descriptors."""

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    def blueprint(self) -> Blueprint:
        """Scan this descriptor into a new :class:`Blueprint`."""
        return new_blueprint(self)


def setting(
    default: Any = "",
    *,
    key: str | None = None,
    mutation: str = "",
    save: bool = False,
    required: bool = True,
    secret: bool = False,
    desc: str | None = None,
) -> Any:
    """Declare a leaf setting field.

    ``mutation`` is ``"once"``, ``"mutable"`` or anything else for
    immutable.  ``save`` marks the setting persistent.
    """
    return Field(
        default=None,
        description=desc,
        json_schema_extra={
            _META: {
                "key": key,
                "default": default,
                "mutation": mutation,
                "save": save,
                "required": required,
                "secret": secret,
            }
        },
    )


def group(*, key: str | None = None, desc: str | None = None) -> Any:
    """Declare a nested settings group field."""
    return Field(default=None, description=desc, json_schema_extra={_META: {"key": key}})


def new_blueprint(descriptor: Any) -> Blueprint:
    """Scan *descriptor* into a blueprint.

    Raises:
        DefinitionError: If the descriptor or one of its fields is malformed.
    """
    if not isinstance(descriptor, Settings):
        raise DefinitionError(
            f"descriptor must be a Settings instance, got {type(descriptor).__name__}"
        )
    cls = type(descriptor)
    blueprint = Blueprint(name=cls.__name__, pkg=cls.__module__, mode=detect_execution_mode())
    for name, info in cls.model_fields.items():
        if name.startswith("_"):
            continue
        blueprint.add_spec(_spec_from_field(cls.__name__, name, info, getattr(descriptor, name, None)))
    logger.debug("Scanned %s.%s into %d key(s)", cls.__module__, cls.__name__, len(blueprint.keys()))
    return blueprint


def to_key(name: str) -> str:
    """``MaxConn`` -> ``max_conn``; already snake-cased names pass through."""
    out: list[str] = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


def _metadata(info: FieldInfo) -> dict[str, Any]:
    extra = info.json_schema_extra
    if isinstance(extra, dict):
        meta = extra.get(_META)
        if isinstance(meta, dict):
            return meta
    return {}


def _unwrap(annotation: Any) -> Any:
    """Strip ``Optional[...]`` from a field annotation."""
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _spec_from_field(owner: str, name: str, info: FieldInfo, value: Any) -> SettingSpec:
    meta = _metadata(info)
    key = meta.get("key") or to_key(name)
    descriptions = {ENGLISH: info.description} if info.description else {}
    annotation = _unwrap(info.annotation)

    if not isinstance(annotation, type):
        raise DefinitionError(f"{owner}: field {key!r} has unsupported type {annotation!r}")

    if issubclass(annotation, Settings):
        return _group_spec(owner, key, annotation, value, descriptions)

    can_encode = issubclass(annotation, Marshaller)
    can_decode = issubclass(annotation, Unmarshaller)
    if not can_encode and not can_decode:
        raise DefinitionError(
            f"{owner}: field {key!r} must be a Settings group or implement "
            "marshal_setting and unmarshal_setting"
        )
    if not (can_encode and can_decode):
        missing = "unmarshal_setting" if can_encode else "marshal_setting"
        raise DefinitionError(f"{owner}: field {key!r} does not implement {missing}")

    kind = annotation.setting_kind() if issubclass(annotation, KindProvider) else Kind.CUSTOM

    mutability = _MUTATIONS.get(meta.get("mutation", ""), Mutability.IMMUTABLE)
    default = meta.get("default", "")
    try:
        default = to_raw(kind, default)
    except ValueError as exc:
        raise DefinitionError(f"{owner}: field {key!r} has invalid default: {exc}") from exc
    if kind is Kind.BOOL and default not in ("", "false"):
        raise DefinitionError(f"{owner}: boolean field {key!r} can only default to false")

    current = ""
    if value is not None:
        try:
            raw = to_raw(kind, value)
        except ValueError as exc:
            raise DefinitionError(f"{owner}: field {key!r} value does not encode: {exc}") from exc
        if not is_zero(kind, raw):
            # A pre-populated field is its own default.
            default = current = raw

    return SettingSpec(
        key=key,
        kind=kind,
        default=default,
        value=current,
        mutability=mutability,
        is_set=mutability is Mutability.IMMUTABLE,
        persistent=bool(meta.get("save", False)),
        required=bool(meta.get("required", True)),
        secret=bool(meta.get("secret", False)),
        descriptions=descriptions,
    )


def _group_spec(
    owner: str,
    key: str,
    annotation: type[Settings],
    value: Any,
    descriptions: dict[str, str],
) -> SettingSpec:
    nested = value if value is not None else annotation()
    if not isinstance(nested, Settings):
        raise DefinitionError(f"{owner}: group {key!r} is not a Settings instance")
    try:
        blueprint = nested.blueprint()
    except SettingsError:
        raise
    except Exception as exc:
        raise DefinitionError(f"{owner}: group {key!r} failed to build: {exc}") from exc
    if not isinstance(blueprint, Blueprint):
        raise DefinitionError(f"{owner}: group {key!r} did not return a Blueprint")
    return SettingSpec(
        key=key,
        kind=Kind.SETTINGS,
        mutability=Mutability.IMMUTABLE,
        is_set=True,
        settings=blueprint,
        descriptions=descriptions,
    )
