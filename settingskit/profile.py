"""Live, per-consumer instance of a schema.

A profile holds the current value of every setting and enforces mutability:

* ``IMMUTABLE`` settings always reject writes.
* ``ONCE`` settings accept one write, then reject.
* ``MUTABLE`` settings accept any write their validators accept.

All state sits behind a reader/writer lock, so one profile can be shared
between threads.  Profiles are created by :meth:`Schema.profile`, which
loads them exactly once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from . import config as _config
from .errors import (
    KeyNotFoundError,
    MutabilityError,
    ProfileError,
    ValidationError,
    VersionMismatchError,
)
from .kinds import to_raw
from .locks import RWLock
from .preferences import Preferences
from .setting import ENGLISH, Mutability, Setting, normalize_lang

if TYPE_CHECKING:
    from .schema import Schema

logger = logging.getLogger(__name__)

UnknownKeyPolicy = Literal["drop", "report"]


class Profile:
    """Current values of a schema's settings."""

    def __init__(self, name: str, schema: "Schema", *, lang: str | None = None) -> None:
        self._name = name
        self._lang = normalize_lang(lang or _config.engine_config.DEFAULT_LANG) or ENGLISH
        self._schema = schema
        self._lock = RWLock()
        self._settings: dict[str, Setting] = {}
        self._unresolved: tuple[str, ...] = ()
        self._loaded = False
        self._changed = False

    def __repr__(self) -> str:
        return f"Profile(name={self._name!r}, version={self._schema.version!r}, settings={len(self._settings)})"

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(
        self,
        preferences: Preferences | None,
        *,
        unknown_keys: UnknownKeyPolicy | None = None,
    ) -> None:
        policy = unknown_keys or _config.engine_config.UNKNOWN_KEYS
        if policy not in ("drop", "report"):
            raise ValueError(f"unknown key policy must be 'drop' or 'report', got {policy!r}")

        with self._lock.write():
            if self._loaded:
                raise ProfileError(f"profile {self._name!r} is already loaded")

            if preferences is not None and preferences.version != self._schema.version:
                raise VersionMismatchError(
                    f"preferences version {preferences.version} does not match "
                    f"schema version {self._schema.version}"
                )

            settings = {
                key: spec.setting(self._lang) for key, spec in self._schema.settings.items()
            }

            unresolved: list[str] = []
            if preferences is not None:
                matched, unresolved = self._resolve(preferences)
                for key, raw in sorted(matched.items()):
                    spec = self._schema.settings[key]
                    settings[key] = spec.candidate(settings[key], raw)

            if unresolved:
                if policy == "report":
                    logger.warning(
                        "Profile %s: %d unresolved preference key(s): %s",
                        self._name, len(unresolved), ", ".join(unresolved),
                    )
                    self._unresolved = tuple(unresolved)
                else:
                    logger.debug(
                        "Profile %s: dropped unresolved preference key(s): %s",
                        self._name, ", ".join(unresolved),
                    )

            self._settings = settings
            self._loaded = True

        logger.info(
            "Loaded profile %s (%s %s, %d setting(s))",
            self._name, self._schema.module, self._schema.version, len(settings),
        )

    def _resolve(self, preferences: Preferences) -> tuple[dict[str, str], list[str]]:
        """Map stored keys onto schema keys, following one migration hop."""
        schema = self._schema
        matched: dict[str, str] = {}
        migrated: dict[str, tuple[str, str]] = {}
        unresolved: list[str] = []

        for key, raw in preferences.items():
            if key in schema.settings:
                matched[key] = raw
                continue
            target = schema.migrations.get(key)
            if target is not None and target in schema.settings:
                migrated[target] = (key, raw)
                continue
            unresolved.append(key)

        for target, (old, raw) in migrated.items():
            if target in matched:
                logger.debug("Ignoring migrated key %s: %s is stored directly", old, target)
                continue
            logger.debug("Migrated preference %s -> %s", old, target)
            matched[target] = raw
        return matched, unresolved

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def lang(self) -> str:
        return self._lang

    @property
    def module(self) -> str:
        return self._schema.module

    @property
    def schema_id(self) -> str:
        return self._schema.id

    @property
    def version(self) -> str:
        with self._lock.read():
            return self._schema.version

    @property
    def loaded(self) -> bool:
        with self._lock.read():
            return self._loaded

    @property
    def changed(self) -> bool:
        """True once a write changed a setting's canonical value."""
        with self._lock.read():
            return self._changed

    @property
    def unresolved(self) -> tuple[str, ...]:
        """Stored keys that matched nothing, when the ``report`` policy is active."""
        with self._lock.read():
            return self._unresolved

    def get(self, key: str) -> Setting | None:
        """Return the setting for *key*, or ``None`` if it does not exist."""
        with self._lock.read():
            return self._settings.get(key)

    def has(self, key: str) -> bool:
        with self._lock.read():
            return key in self._settings

    def all(self) -> tuple[Setting, ...]:
        """Key-sorted snapshot of every setting.

        The lock is released before the tuple is returned, so callers may
        call back into the profile while iterating.
        """
        with self._lock.read():
            return tuple(self._settings[key] for key in sorted(self._settings))

    def describe(self, key: str) -> str:
        spec = self._schema.get(key)
        if spec is None:
            return ""
        with self._lock.read():
            return spec.description(self._lang)

    def preferences(self) -> Preferences:
        """Snapshot of persistent settings that have been set, for saving."""
        with self._lock.read():
            prefs = Preferences(self._schema.version)
            for key in sorted(self._settings):
                setting = self._settings[key]
                if setting.persistent and setting.is_set:
                    prefs.set(key, str(setting))
        return prefs

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Write *value* to *key*.

        *value* may be a string, bytes, a value implementing
        ``marshal_setting`` or a plain Python value of the setting's kind.
        A failed write leaves the profile untouched.

        Raises:
            KeyNotFoundError: If *key* does not exist.
            MutabilityError: If the setting is immutable, or a once setting
                that is already set.
            ValidationError: If the value does not decode or a validator
                rejects it.
        """
        with self._lock.write():
            current = self._settings.get(key)
            if current is None:
                raise KeyNotFoundError(f"setting {key!r} not found")
            if current.mutability is Mutability.IMMUTABLE:
                raise MutabilityError(f"setting {key!r} is immutable")
            if current.mutability is Mutability.ONCE and current.is_set:
                raise MutabilityError(f"setting {key!r} can only be set once")

            candidate = self._candidate(current, value)
            if str(candidate) != str(current):
                self._changed = True
            self._settings[key] = candidate

    def validate_preference(self, key: str, value: Any) -> None:
        """Check that *value* could be saved as a preference for *key*.

        Never mutates the profile.

        Raises:
            KeyNotFoundError: If *key* does not exist.
            ProfileError: If the setting is not persistent.
            MutabilityError: If the setting is immutable.
            ValidationError: If the value does not decode or a validator
                rejects it.
        """
        with self._lock.read():
            current = self._settings.get(key)
            if current is None:
                raise KeyNotFoundError(f"setting {key!r} not found")
            if not current.persistent:
                raise ProfileError(f"setting {key!r} is not persistent")
            if current.mutability is Mutability.IMMUTABLE:
                raise MutabilityError(f"setting {key!r} is immutable")
            self._candidate(current, value)

    def _candidate(self, current: Setting, value: Any) -> Setting:
        try:
            raw = to_raw(current.kind, value)
        except ValueError as exc:
            raise ValidationError(f"setting {current.key!r}: {exc}") from exc
        return self._schema.settings[current.key].candidate(current, raw)
