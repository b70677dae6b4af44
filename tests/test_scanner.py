"""Tests for settingskit.scanner."""

import pytest

from settingskit.blueprint import Blueprint
from settingskit.errors import DefinitionError, DuplicateKeyError
from settingskit.kinds import Bool, Duration, Int, Kind, String, StringList, Uint
from settingskit.mode import ExecutionMode
from settingskit.scanner import Settings, group, new_blueprint, setting, to_key
from settingskit.setting import Mutability


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------

class Database(Settings):
    host: String = setting("localhost", desc="Database host")
    port: Uint = setting("5432", mutation="once", save=True)


class App(Settings):
    name: String = setting("demo", mutation="mutable", save=True, desc="Application name")
    debug: Bool = setting(mutation="mutable")
    MaxConn: Int = setting("10")
    timeout: Duration = setting("30s", mutation="mutable", save=True)
    tags: StringList = setting("a,b", key="labels")
    token: String = setting(secret=True, required=False)
    database: Database = group(desc="Database connection")


class Color:
    def __init__(self, name=""):
        self.name = name

    def marshal_setting(self) -> bytes:
        return self.name.encode()

    @classmethod
    def unmarshal_setting(cls, data: bytes) -> "Color":
        return cls(data.decode())


class Theme(Settings):
    color: Color = setting("red", mutation="mutable")


class EncodeOnly:
    def marshal_setting(self) -> bytes:
        return b""


class HalfCapable(Settings):
    value: EncodeOnly = setting()


class PlainField(Settings):
    count: int = 0


class BadBool(Settings):
    flag: Bool = setting("true")


class Exploding(Settings):
    def blueprint(self):
        raise RuntimeError("boom")


class HasExploding(Settings):
    inner: Exploding = group()


def _positive(s):
    if s.value <= 0:
        raise ValueError("must be positive")


class Tuned(Settings):
    level: Int = setting("1", mutation="mutable")

    def blueprint(self):
        bp = super().blueprint()
        bp.add_validator("level", _positive, "level")
        bp.describe("level", "fi", "Taso")
        return bp


class Clash(Settings):
    db_host: String = setting(key="db")
    db: Database = group()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

class TestToKey:
    @pytest.mark.parametrize("name, expected", [
        ("Name", "name"),
        ("CamelCase", "camel_case"),
        ("TestSettingValue", "test_setting_value"),
        ("A", "a"),
        ("", ""),
        ("already_snake", "already_snake"),
    ])
    def test_conversion(self, name, expected):
        assert to_key(name) == expected


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class TestScan:
    def test_returns_blueprint(self):
        bp = App().blueprint()
        assert isinstance(bp, Blueprint)
        assert bp.name == "App"
        assert bp.pkg == __name__

    def test_keys(self):
        bp = App().blueprint()
        assert bp.keys() == [
            "database.host",
            "database.port",
            "debug",
            "labels",
            "max_conn",
            "name",
            "timeout",
            "token",
        ]

    def test_kinds(self):
        bp = App().blueprint()
        assert bp.get_spec("name").kind is Kind.STRING
        assert bp.get_spec("debug").kind is Kind.BOOL
        assert bp.get_spec("max_conn").kind is Kind.INT
        assert bp.get_spec("timeout").kind is Kind.DURATION
        assert bp.get_spec("labels").kind is Kind.STRING_LIST
        assert bp.get_spec("database.port").kind is Kind.UINT

    def test_mutation_hints(self):
        bp = App().blueprint()
        assert bp.get_spec("name").mutability is Mutability.MUTABLE
        assert bp.get_spec("database.port").mutability is Mutability.ONCE
        assert bp.get_spec("max_conn").mutability is Mutability.IMMUTABLE

    def test_immutable_is_set(self):
        bp = App().blueprint()
        assert bp.get_spec("max_conn").is_set is True
        assert bp.get_spec("name").is_set is False
        assert bp.get_spec("database.port").is_set is False

    def test_flags(self):
        bp = App().blueprint()
        assert bp.get_spec("name").persistent is True
        assert bp.get_spec("debug").persistent is False
        assert bp.get_spec("token").secret is True
        assert bp.get_spec("token").required is False

    def test_defaults_and_placeholder(self):
        spec = App().blueprint().get_spec("max_conn")
        assert spec.default == "10"
        assert spec.value == ""

    def test_description(self):
        bp = App().blueprint()
        assert bp.get_spec("name").descriptions == {"en": "Application name"}
        assert bp.get_spec("database.host").description() == "Database host"

    def test_group_attached(self):
        bp = App().blueprint()
        assert "database" in bp.groups
        assert bp.groups["database"].name == "Database"

    def test_prepopulated_value_is_default(self):
        spec = App(name="custom").blueprint().get_spec("name")
        assert spec.default == "custom"
        assert spec.value == "custom"

    def test_prepopulated_zero_is_ignored(self):
        spec = App(MaxConn=0).blueprint().get_spec("max_conn")
        assert spec.default == "10"
        assert spec.value == ""

    def test_prepopulated_nested_group(self):
        bp = App(database=Database(host="db.internal")).blueprint()
        assert bp.get_spec("database.host").default == "db.internal"

    def test_custom_kind(self):
        spec = Theme().blueprint().get_spec("color")
        assert spec.kind is Kind.CUSTOM
        assert spec.default == "red"

    def test_custom_prepopulated(self):
        spec = Theme(color=Color("blue")).blueprint().get_spec("color")
        assert spec.value == "blue"

    def test_blueprint_override(self):
        bp = Tuned().blueprint()
        spec = bp.get_spec("level")
        assert [v.desc for v in spec.validators] == ["level"]
        assert spec.descriptions == {"fi": "Taso"}

    def test_execution_mode_under_pytest(self):
        assert App().blueprint().mode is ExecutionMode.TESTING


class TestScanErrors:
    def test_not_a_descriptor(self):
        with pytest.raises(DefinitionError, match="must be a Settings instance"):
            new_blueprint(object())

    def test_no_capability(self):
        with pytest.raises(DefinitionError, match="must be a Settings group"):
            PlainField().blueprint()

    def test_half_capability(self):
        with pytest.raises(DefinitionError, match="does not implement unmarshal_setting"):
            HalfCapable().blueprint()

    def test_bool_default_must_be_false(self):
        with pytest.raises(DefinitionError, match="can only default to false"):
            BadBool().blueprint()

    def test_nested_descriptor_raising(self):
        with pytest.raises(DefinitionError, match="boom") as exc_info:
            HasExploding().blueprint()
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_key_clash_with_group(self):
        with pytest.raises(DuplicateKeyError):
            Clash().blueprint()
