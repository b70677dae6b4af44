"""Static setting specifications and their live counterparts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from .errors import DefinitionError, ValidationError
from .kinds import Kind, format_as, is_zero, parse_as

if TYPE_CHECKING:
    from .blueprint import Blueprint

ENGLISH = "en"


class Mutability(IntEnum):
    """How often a setting may change at runtime.

    The ordinal values are fixed; anything outside ``MUTABLE..IMMUTABLE`` is
    a definition error.
    """

    # Can not be changed at runtime.
    IMMUTABLE = 254
    # Can be set once at runtime; typically needs an application reload.
    ONCE = 253
    # Can be changed at runtime.
    MUTABLE = 252

    def __str__(self) -> str:
        return self.name.lower()


def normalize_lang(lang: str) -> str:
    """Normalize a language tag: ``en_US`` -> ``en-us``."""
    return lang.strip().replace("_", "-").lower()


def check_mutability(key: str, mutability: Any) -> Mutability:
    try:
        return Mutability(int(mutability))
    except (TypeError, ValueError) as exc:
        raise DefinitionError(f"invalid mutability {mutability!r} for {key!r}") from exc


@dataclass(frozen=True)
class Validator:
    """A named check run against every candidate value of a setting.

    ``fn`` receives the candidate :class:`Setting` and rejects it by raising
    ``ValueError``.
    """

    desc: str
    fn: Callable[["Setting"], Any]


@dataclass(frozen=True)
class Setting:
    """The live value of one setting inside a profile."""

    key: str
    kind: Kind
    value: Any
    default: Any
    is_set: bool
    mutability: Mutability
    persistent: bool
    description: str = ""
    secret: bool = False

    def __str__(self) -> str:
        return format_as(self.kind, self.value)

    @property
    def default_string(self) -> str:
        return format_as(self.kind, self.default)

    def display(self) -> str:
        """Canonical string, redacted for secrets."""
        if self.secret and str(self):
            return "****"
        return str(self)


@dataclass(frozen=True)
class SettingSpec:
    """Static declaration of one configurable item.

    ``default`` and ``value`` are string encoded.  A spec with ``settings``
    set describes a nested group rather than a leaf.
    """

    key: str
    kind: Kind = Kind.STRING
    default: str = ""
    value: str = ""
    mutability: Mutability = Mutability.IMMUTABLE
    is_set: bool = False
    persistent: bool = False
    required: bool = True
    secret: bool = False
    settings: Optional["Blueprint"] = None
    validators: tuple[Validator, ...] = ()
    descriptions: Mapping[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise :class:`DefinitionError` unless the spec is well formed."""
        if not self.key:
            raise DefinitionError("setting key can not be empty")
        if any(not part for part in self.key.split(".")):
            raise DefinitionError(f"setting key {self.key!r} has an empty segment")
        check_mutability(self.key, self.mutability)
        if not isinstance(self.kind, Kind) or self.kind is Kind.INVALID:
            raise DefinitionError(f"invalid kind {self.kind!r} for {self.key!r}")
        if self.kind is Kind.SETTINGS and self.settings is None:
            raise DefinitionError(f"settings group {self.key!r} has no blueprint")

    def description(self, lang: str = ENGLISH) -> str:
        lang = normalize_lang(lang)
        if lang in self.descriptions:
            return self.descriptions[lang]
        base = lang.split("-", 1)[0]
        return self.descriptions.get(base, self.descriptions.get(ENGLISH, ""))

    def setting(self, lang: str = ENGLISH) -> Setting:
        """Instantiate the live setting for this spec.

        Raises:
            DefinitionError: If the spec value or default does not decode.
        """
        # The current value tracks the default while it is a zero placeholder.
        raw = self.default if is_zero(self.kind, self.value) else self.value
        try:
            value = parse_as(self.kind, raw)
            default = parse_as(self.kind, self.default)
        except ValueError as exc:
            raise DefinitionError(f"setting {self.key!r}: {exc}") from exc
        return Setting(
            key=self.key,
            kind=self.kind,
            value=value,
            default=default,
            is_set=self.is_set,
            mutability=Mutability(self.mutability),
            persistent=self.persistent,
            description=self.description(lang),
            secret=self.secret,
        )

    def candidate(self, current: Setting, raw: str) -> Setting:
        """Decode *raw* into a new, set copy of *current* and run validators.

        Raises:
            ValidationError: If *raw* does not decode or a validator rejects it.
        """
        try:
            value = parse_as(self.kind, raw)
        except ValueError as exc:
            raise ValidationError(f"setting {self.key!r}: {exc}") from exc
        candidate = Setting(
            key=current.key,
            kind=current.kind,
            value=value,
            default=current.default,
            is_set=True,
            mutability=current.mutability,
            persistent=current.persistent,
            description=current.description,
            secret=current.secret,
        )
        self.run_validators(candidate)
        return candidate

    def run_validators(self, setting: Setting) -> None:
        for validator in self.validators:
            try:
                validator.fn(setting)
            except ValueError as exc:
                raise ValidationError(f"{validator.desc}: {exc}") from exc
