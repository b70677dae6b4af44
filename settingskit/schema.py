"""Immutable, versioned compilation of a blueprint tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Literal, Mapping

from .mode import ExecutionMode
from .preferences import Preferences, PreferencesFormat
from .profile import Profile
from .setting import SettingSpec


@dataclass(frozen=True)
class Schema:
    """Flat, read-only map of fully qualified keys to setting specs.

    Produced by :meth:`Blueprint.schema`; safe to share between threads.
    ``id`` is derived from the descriptor name, package and execution mode
    and is meant for diagnostics and cache keys only.
    """

    version: str
    module: str
    name: str
    pkg: str
    mode: ExecutionMode
    id: str
    settings: Mapping[str, SettingSpec]
    migrations: Mapping[str, str]

    def __contains__(self, key: object) -> bool:
        return key in self.settings

    def __len__(self) -> int:
        return len(self.settings)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> list[str]:
        return sorted(self.settings)

    def get(self, key: str) -> SettingSpec | None:
        return self.settings.get(key)

    def new_preferences(self) -> Preferences:
        """Empty preferences stamped with this schema's version."""
        return Preferences(self.version)

    def load_preferences(
        self,
        data: bytes | str,
        fmt: PreferencesFormat | str | None = None,
    ) -> Preferences:
        """Decode persisted preferences; empty input means a fresh install."""
        return Preferences.decode(data, fmt, default_version=self.version)

    def profile(
        self,
        name: str,
        preferences: Preferences | None = None,
        *,
        lang: str | None = None,
        unknown_keys: Literal["drop", "report"] | None = None,
    ) -> Profile:
        """Create a fully loaded profile, overlaying *preferences* if given.

        Raises:
            VersionMismatchError: If the preferences were saved for another
                schema version.
            ValidationError: If a stored value does not decode or a validator
                rejects it.
            DefinitionError: If a spec default does not decode.
        """
        profile = Profile(name, self, lang=lang)
        profile._load(preferences, unknown_keys=unknown_keys)
        return profile
