"""Exception hierarchy for the settings engine.

Every error raised by settingskit derives from :class:`SettingsError`, so
hosts can catch the whole family at application boot.  Structural and
definition errors are fatal; runtime ``Profile.set`` failures are returned to
the caller without mutating the profile.
"""

from __future__ import annotations

from typing import Sequence


class SettingsError(Exception):
    """Base class for all settings engine errors."""


class DefinitionError(SettingsError, TypeError):
    """A descriptor or spec is malformed (missing capability, bad default...)."""


class BlueprintError(SettingsError):
    """A structural problem while building or compiling a blueprint.

    Attributes:
        errors: Deferred build errors collected before compilation, if any.
    """

    def __init__(self, message: str, errors: Sequence[Exception] = ()) -> None:
        super().__init__(message)
        self.errors = list(errors)


class DuplicateKeyError(BlueprintError):
    """A key, subgroup, description or migration is registered twice."""


class GroupFreezeError(BlueprintError):
    """A blueprint was mutated or compiled after producing a schema."""


class VersionError(SettingsError, ValueError):
    """A version string is not a valid semantic version."""


class VersionMismatchError(SettingsError):
    """Preferences were saved for a different schema version."""


class KeyNotFoundError(SettingsError, LookupError):
    """An operation referenced a key the blueprint or profile does not know."""


class MutabilityError(SettingsError):
    """A write was attempted on an immutable or already-set once setting."""


class ValidationError(SettingsError, ValueError):
    """A value could not be decoded or a validator rejected it."""


class ProfileError(SettingsError):
    """A profile was used outside its lifecycle (double load, etc.)."""


class PreferencesError(SettingsError, ValueError):
    """A persisted preferences payload could not be decoded."""
