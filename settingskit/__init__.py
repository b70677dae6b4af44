"""settingskit -- declarative settings: blueprints, schemas, profiles and preferences."""

from .blueprint import Blueprint
from .config import EngineConfig, engine_config
from .errors import (
    BlueprintError,
    DefinitionError,
    DuplicateKeyError,
    GroupFreezeError,
    KeyNotFoundError,
    MutabilityError,
    PreferencesError,
    ProfileError,
    SettingsError,
    ValidationError,
    VersionError,
    VersionMismatchError,
)
from .kinds import (
    Bool,
    Duration,
    Int,
    Kind,
    KindProvider,
    Marshaller,
    String,
    StringList,
    Uint,
    Unmarshaller,
)
from .mode import ExecutionMode, detect_execution_mode
from .preferences import Preferences, PreferencesFormat
from .profile import Profile
from .scanner import Settings, group, new_blueprint, setting
from .schema import Schema
from .setting import Mutability, Setting, SettingSpec, Validator
from .version import is_valid_version, parse_version

__all__ = [
    "Blueprint",
    "BlueprintError",
    "Bool",
    "DefinitionError",
    "DuplicateKeyError",
    "Duration",
    "EngineConfig",
    "ExecutionMode",
    "GroupFreezeError",
    "Int",
    "KeyNotFoundError",
    "Kind",
    "KindProvider",
    "Marshaller",
    "Mutability",
    "MutabilityError",
    "Preferences",
    "PreferencesError",
    "PreferencesFormat",
    "Profile",
    "ProfileError",
    "Schema",
    "Setting",
    "SettingSpec",
    "Settings",
    "SettingsError",
    "String",
    "StringList",
    "Uint",
    "Unmarshaller",
    "ValidationError",
    "Validator",
    "VersionError",
    "VersionMismatchError",
    "detect_execution_mode",
    "engine_config",
    "group",
    "is_valid_version",
    "new_blueprint",
    "parse_version",
    "setting",
]
