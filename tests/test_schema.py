"""Tests for settingskit.schema and Blueprint.schema compilation."""

import logging

import pytest

from settingskit.blueprint import Blueprint
from settingskit.errors import DefinitionError, VersionError
from settingskit.kinds import Bool, Int, Kind, String, Uint
from settingskit.mode import ExecutionMode
from settingskit.preferences import Preferences
from settingskit.scanner import Settings, group, setting
from settingskit.setting import Mutability, SettingSpec


class Pool(Settings):
    min_size: Uint = setting("1")
    max_size: Uint = setting("10", mutation="mutable")


class Storage(Settings):
    path: String = setting("/var/lib/app")
    pool: Pool = group()


class Service(Settings):
    name: String = setting("svc", mutation="mutable")
    verbose: Bool = setting(mutation="mutable")
    workers: Int = setting("4", mutation="once")
    storage: Storage = group()


class Other(Settings):
    name: String = setting("other")


def _bp():
    return Blueprint(name="Test", pkg="tests", mode=ExecutionMode.TESTING)


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

class TestFlatten:
    def test_key_set_is_every_path_once(self):
        schema = Service().blueprint().schema("example.com/svc", "v1.0.0")
        assert schema.keys() == [
            "name",
            "storage.path",
            "storage.pool.max_size",
            "storage.pool.min_size",
            "verbose",
            "workers",
        ]
        assert len(schema) == 6

    def test_specs_carry_qualified_keys(self):
        schema = Service().blueprint().schema("mod", "1.0.0")
        spec = schema.get("storage.pool.max_size")
        assert spec.key == "storage.pool.max_size"
        assert spec.kind is Kind.UINT
        assert spec.mutability is Mutability.MUTABLE

    def test_groups_are_not_settings(self):
        schema = Service().blueprint().schema("mod", "1.0.0")
        assert "storage" not in schema
        assert "storage.pool" not in schema
        assert schema.get("storage") is None

    def test_extended_groups_flatten(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="top"))
        bp.extend("other", Other())
        schema = bp.schema("mod", "1.0.0")
        assert schema.keys() == ["other.name", "top"]

    def test_iteration_is_sorted(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="b"))
        bp.add_spec(SettingSpec(key="a"))
        assert list(bp.schema("mod", "1.0.0")) == ["a", "b"]

    def test_settings_are_read_only(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="a"))
        schema = bp.schema("mod", "1.0.0")
        with pytest.raises(TypeError):
            schema.settings["b"] = SettingSpec(key="b")

    def test_invalid_spec_rejected(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="ok"))
        with pytest.raises(DefinitionError, match="invalid kind"):
            bp.add_spec(SettingSpec(key="bad", kind=Kind.INVALID, mutability=Mutability.MUTABLE))
        assert bp.schema("mod", "1.0.0").keys() == ["ok"]


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class TestIdentity:
    def test_version_canonical(self):
        bp = _bp()
        assert bp.schema("mod", "1.2.3").version == "v1.2.3"

    def test_invalid_version(self):
        bp = _bp()
        with pytest.raises(VersionError):
            bp.schema("mod", "1.2")
        assert not bp.frozen

    def test_metadata(self):
        schema = Service().blueprint().schema("example.com/svc", "v2.0.0")
        assert schema.module == "example.com/svc"
        assert schema.name == "Service"
        assert schema.pkg == __name__
        assert schema.mode is ExecutionMode.TESTING

    def test_id_is_stable(self):
        a = Service().blueprint().schema("mod", "1.0.0")
        b = Service().blueprint().schema("other", "2.0.0")
        assert a.id == b.id
        assert len(a.id) == 16
        int(a.id, 16)

    def test_id_depends_on_descriptor(self):
        a = Service().blueprint().schema("mod", "1.0.0")
        b = Other().blueprint().schema("mod", "1.0.0")
        assert a.id != b.id

    def test_id_depends_on_mode(self):
        a = Blueprint(name="X", pkg="p", mode=ExecutionMode.TESTING).schema("m", "1.0.0")
        b = Blueprint(name="X", pkg="p", mode=ExecutionMode.PRODUCTION).schema("m", "1.0.0")
        assert a.id != b.id


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------

class TestMigrationMerge:
    def test_root_migrations(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="c.d"))
        bp.migrate("a.b", "c.d")
        assert dict(bp.schema("mod", "1.0.0").migrations) == {"a.b": "c.d"}

    def test_group_migrations_are_prefixed(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="db.host"))
        bp.groups["db"].migrate("hostname", "host")
        assert dict(bp.schema("mod", "1.0.0").migrations) == {"db.hostname": "db.host"}

    def test_root_wins(self, caplog):
        bp = _bp()
        bp.add_spec(SettingSpec(key="db.host"))
        bp.add_spec(SettingSpec(key="db.port"))
        bp.groups["db"].migrate("old", "host")
        bp.migrate("db.old", "db.port")
        with caplog.at_level(logging.WARNING, logger="settingskit.blueprint"):
            schema = bp.schema("mod", "1.0.0")
        assert schema.migrations["db.old"] == "db.port"
        assert "shadows" in caplog.text


# ---------------------------------------------------------------------------
# Preferences helpers
# ---------------------------------------------------------------------------

class TestPreferencesHelpers:
    def _schema(self):
        bp = _bp()
        bp.add_spec(SettingSpec(key="a", persistent=True, mutability=Mutability.MUTABLE))
        return bp.schema("mod", "3.1.4")

    def test_new_preferences(self):
        prefs = self._schema().new_preferences()
        assert prefs.version == "v3.1.4"
        assert len(prefs) == 0

    def test_load_empty_uses_schema_version(self):
        prefs = self._schema().load_preferences(b"")
        assert prefs.version == "v3.1.4"
        assert len(prefs) == 0

    def test_load_payload(self):
        stored = Preferences("3.1.4")
        stored.set("a", "x")
        prefs = self._schema().load_preferences(stored.encode("json"), "json")
        assert prefs == stored
