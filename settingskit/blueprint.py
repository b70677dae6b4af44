"""Mutable builder that accumulates setting specs before compilation.

A :class:`Blueprint` holds top-level specs, named subgroups (each itself a
blueprint), a one-hop migration table and the build errors deferred until
:meth:`Blueprint.schema` is called.  Dotted keys are routed into subgroups,
so ``add_spec(SettingSpec(key="db.host"))`` creates the ``db`` group on
demand.

Blueprints are built on one thread; there is no locking here.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping

from .errors import (
    BlueprintError,
    DefinitionError,
    DuplicateKeyError,
    GroupFreezeError,
    KeyNotFoundError,
)
from .mode import ExecutionMode, detect_execution_mode
from .setting import SettingSpec, Validator, check_mutability, normalize_lang
from .version import parse_version

if TYPE_CHECKING:
    from .schema import Schema

logger = logging.getLogger(__name__)


class Blueprint:
    """Builder for one settings group.

    Args:
        name: Descriptor name, usually the descriptor class name.
        pkg: Module path the descriptor was declared in.
        mode: Execution mode stamped into the schema id.
    """

    def __init__(
        self,
        name: str = "",
        pkg: str = "",
        mode: ExecutionMode | None = None,
    ) -> None:
        self._name = name
        self._pkg = pkg
        self._mode = mode if mode is not None else detect_execution_mode()
        self._specs: dict[str, SettingSpec] = {}
        self._groups: dict[str, Blueprint] = {}
        self._migrations: dict[str, str] = {}
        self._errors: list[Exception] = []
        self._frozen = False

    def __repr__(self) -> str:
        return f"Blueprint(name={self._name!r}, pkg={self._pkg!r}, specs={len(self._specs)}, groups={len(self._groups)})"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def pkg(self) -> str:
        return self._pkg

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def groups(self) -> Mapping[str, "Blueprint"]:
        return MappingProxyType(self._groups)

    @property
    def migrations(self) -> dict[str, str]:
        """Migrations registered on this group (not merged)."""
        return dict(self._migrations)

    @property
    def errors(self) -> list[Exception]:
        """Deferred build errors of this group and all subgroups."""
        errors = list(self._errors)
        for group in self._groups.values():
            errors.extend(group.errors)
        return errors

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_spec(self, spec: SettingSpec) -> None:
        """Register *spec*, routing dotted keys into subgroups.

        Raises:
            DefinitionError: If the spec mutability is out of range.
            DuplicateKeyError: If the key or group already exists.
            GroupFreezeError: If the blueprint already produced a schema.
        """
        self._check_frozen()
        check_mutability(spec.key, spec.mutability)

        if "." in spec.key:
            group, _, rest = spec.key.partition(".")
            if not group or not rest:
                raise DefinitionError(f"invalid setting key {spec.key!r}")
            target = self._groups.get(group)
            if target is None:
                if group in self._specs:
                    raise DuplicateKeyError(f"{self._pkg}: key {group!r} is a setting, not a group")
                target = Blueprint(name=group, pkg=self._pkg, mode=self._mode)
                self._groups[group] = target
            target.add_spec(dataclasses.replace(spec, key=rest))
            return

        if spec.key in self._specs or spec.key in self._groups:
            raise DuplicateKeyError(f"{self._pkg}: key {spec.key!r} already exists")

        if spec.settings is not None:
            self._groups[spec.key] = spec.settings
            logger.debug("Attached group %s to %s", spec.key, self._name or self._pkg)
            return

        spec.validate()
        self._specs[spec.key] = spec
        logger.debug("Registered setting %s (%s, %s)", spec.key, spec.kind, spec.mutability)

    def add_validator(self, key: str, fn: Callable[[Any], Any], desc: str = "") -> None:
        """Attach a validator to *key*.

        An unknown key does not raise here; it is recorded and reported by
        :meth:`schema`.
        """
        self._check_frozen()
        owner, local = self._locate(key)
        if owner is None or local not in owner._specs:
            self._errors.append(KeyNotFoundError(f"{key!r} not found to add validator"))
            return
        spec = owner._specs[local]
        validator = Validator(desc=desc or f"{key} validator", fn=fn)
        owner._specs[local] = dataclasses.replace(spec, validators=spec.validators + (validator,))

    def describe(self, key: str, lang: str, text: str) -> None:
        """Attach a description of *key* in language *lang*.

        Raises:
            KeyNotFoundError: If *key* is not registered.
            DuplicateKeyError: If *key* is already described in *lang*.
        """
        self._check_frozen()
        owner, local = self._locate(key)
        if owner is None or local not in owner._specs:
            raise KeyNotFoundError(f"{key!r} not found to add description")
        spec = owner._specs[local]
        lang = normalize_lang(lang)
        if lang in spec.descriptions:
            raise DuplicateKeyError(f"{key!r} already described in {lang}: {spec.descriptions[lang]!r}")
        descriptions = dict(spec.descriptions)
        descriptions[lang] = text
        owner._specs[local] = dataclasses.replace(spec, descriptions=descriptions)

    def migrate(self, from_key: str, to_key: str) -> None:
        """Register a one-hop rename of a persisted key.

        Raises:
            DuplicateKeyError: If *from_key* already has a migration.
            KeyNotFoundError: If *to_key* is not a known setting.
        """
        self._check_frozen()
        if from_key in self._migrations:
            raise DuplicateKeyError(
                f"migration from {from_key!r} to {to_key!r}: "
                f"{from_key!r} already migrates to {self._migrations[from_key]!r}"
            )
        if not self.has(to_key):
            raise KeyNotFoundError(f"migration target {to_key!r} not found")
        self._migrations[from_key] = to_key

    def extend(self, group: str, descriptor: Any) -> None:
        """Compile *descriptor* and attach its blueprint as subgroup *group*.

        Raises:
            BlueprintError: If the descriptor is missing, fails to build its
                blueprint, returns nothing, or *group* already exists.
        """
        self._check_frozen()
        if descriptor is None:
            raise BlueprintError(f"{self._pkg}: extending {group!r} with None")
        if not group or "." in group:
            raise BlueprintError(f"{self._pkg}: invalid group name {group!r}")
        if group in self._groups or group in self._specs:
            raise DuplicateKeyError(f"{self._pkg}: group {group!r} already exists")

        try:
            blueprint = descriptor.blueprint()
        except Exception as exc:
            raise BlueprintError(f"{self._pkg}: extending {group!r} failed: {exc}") from exc

        if blueprint is None:
            raise BlueprintError(f"{self._pkg}: blueprint for group {group!r} is None")
        if not isinstance(blueprint, Blueprint):
            raise BlueprintError(
                f"{self._pkg}: blueprint for group {group!r} is a {type(blueprint).__name__}"
            )
        self._groups[group] = blueprint
        logger.debug("Extended %s with group %s (%s)", self._name or self._pkg, group, blueprint.pkg)

    def set_default(self, key: str, value: str) -> None:
        """Replace the default of *key*.

        An unset value keeps following the default; a pre-populated value is
        left alone.

        Raises:
            KeyNotFoundError: If *key* is not registered.
            DefinitionError: If *value* is not a valid default for the kind.
        """
        self._check_frozen()
        owner, local = self._locate(key)
        if owner is None or local not in owner._specs:
            raise KeyNotFoundError(f"{key!r} not found to set default")
        spec = owner._specs[local]
        updated = dataclasses.replace(spec, default=value)
        # Surface an undecodable default now instead of at profile time.
        updated.setting()
        owner._specs[local] = updated

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_spec(self, key: str) -> SettingSpec:
        """Return the spec registered under (possibly dotted) *key*.

        Raises:
            KeyNotFoundError: If there is no such setting.
        """
        owner, local = self._locate(key)
        if owner is None or local not in owner._specs:
            raise KeyNotFoundError(f"no setting {key!r} in {self._name} ({self._pkg})")
        return owner._specs[local]

    def has(self, key: str) -> bool:
        owner, local = self._locate(key)
        return owner is not None and local in owner._specs

    def keys(self) -> list[str]:
        """Fully qualified leaf keys, sorted."""
        return sorted(key for key, _ in self._walk(""))

    def _locate(self, key: str) -> tuple[Blueprint | None, str]:
        node: Blueprint = self
        parts = key.split(".")
        for part in parts[:-1]:
            child = node._groups.get(part)
            if child is None:
                return None, key
            node = child
        return node, parts[-1]

    def _walk(self, prefix: str) -> Iterator[tuple[str, SettingSpec]]:
        for key, spec in self._specs.items():
            yield prefix + key, spec
        for name, group in self._groups.items():
            yield from group._walk(f"{prefix}{name}.")

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def schema(self, module: str, version: str) -> "Schema":
        """Compile this blueprint tree into an immutable :class:`Schema`.

        On success the whole tree is frozen.

        Raises:
            GroupFreezeError: If this blueprint was already compiled.
            BlueprintError: If build errors were deferred (see ``.errors``).
            VersionError: If *version* is not a semantic version.
            DefinitionError: If a spec fails re-validation.
        """
        from .schema import Schema

        self._check_frozen()
        errors = self.errors
        if errors:
            raise BlueprintError(
                f"{self._pkg}: {len(errors)} build error(s): " + "; ".join(str(e) for e in errors),
                errors=errors,
            )
        canonical = parse_version(version)

        flat: dict[str, SettingSpec] = {}
        for key, spec in self._walk(""):
            spec.validate()
            if key in flat:
                raise DuplicateKeyError(f"duplicate schema key {key!r}")
            flat[key] = dataclasses.replace(spec, key=key)

        schema = Schema(
            version=canonical,
            module=module,
            name=self._name,
            pkg=self._pkg,
            mode=self._mode,
            id=self._schema_id(),
            settings=MappingProxyType(flat),
            migrations=MappingProxyType(self._merged_migrations()),
        )
        self._freeze()
        logger.debug(
            "Compiled schema %s %s for %s: %d setting(s), %d migration(s)",
            schema.id, canonical, module, len(flat), len(schema.migrations),
        )
        return schema

    def _merged_migrations(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for name, group in self._groups.items():
            for old, new in group._merged_migrations().items():
                merged[f"{name}.{old}"] = f"{name}.{new}"
        for old, new in self._migrations.items():
            if old in merged and merged[old] != new:
                logger.warning(
                    "Migration %s -> %s shadows %s -> %s from a subgroup",
                    old, new, old, merged[old],
                )
            merged[old] = new
        return merged

    def _schema_id(self) -> str:
        payload = json.dumps(
            {"name": self._name, "pkg": self._pkg, "mode": self._mode.value},
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    def _freeze(self) -> None:
        self._frozen = True
        for group in self._groups.values():
            group._freeze()

    def _check_frozen(self) -> None:
        if self._frozen:
            raise GroupFreezeError(f"blueprint {self._name or self._pkg!r} is frozen")
