"""
Tile Auto-Mapper - Rule Library

Loads tile set resources and the auto-mapper rules stored for them. Disk and
decode work runs as background tasks that are polled once per editor tick by
`update()`; failures are queued and surfaced as notifications without
stopping sibling tasks.

Rules of a resource live in `<rules_root>/<name>_<hash>/`, where the hash is
the content hash of the tile set image.
"""

import os
import queue
import tempfile
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from editor.algorithms.auto_mapper_interface import AutoMapperError
from editor.algorithms.auto_mapper_rules import EditorRule
from editor.algorithms.script_rules import ScriptModule
from editor.core.constants import (
    EDITOR_RULE_EXTENSION,
    MAX_BACKGROUND_WORKERS,
    MODULE_CACHE_DIR,
    RULE_EXTENSIONS,
    SCRIPT_MODULE_EXTENSION,
)
from tilemap.core.hashing import name_and_hash, resource_key
from tilemap.core.tileset import TilesetData
from tilemap.formats import compact_json as json

from .auto_mapper import AutoMapperRule, rules_from_bytes
from .notifications import Notifications


@dataclass
class LoadedResource:
    """Raw bytes of a tile set image plus its content identity."""

    name: str
    digest: str
    data: bytes

    @property
    def key(self) -> str:
        return resource_key(self.name, self.digest)


@dataclass
class ResourceRules:
    """A decoded tile set and every rule stored for it."""

    key: str
    tileset: TilesetData
    rules: dict[str, AutoMapperRule] = field(default_factory=dict)


@dataclass
class ImportedRule:
    resource_key: str
    filename: str
    data: bytes
    rules: dict[str, AutoMapperRule] = field(default_factory=dict)


class RuleLibrary:
    """Rules per tile set resource, loaded by background tasks."""

    def __init__(
        self,
        rules_root,
        executor: Optional[Executor] = None,
        max_workers: int = MAX_BACKGROUND_WORKERS,
    ):
        self.rules_root = Path(rules_root)
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers)
        self._owns_executor = executor is None

        self.resources: dict[str, ResourceRules] = {}
        self.failed_tasks: set[str] = set()
        self.errors: "queue.Queue[str]" = queue.Queue()

        self._resource_tasks: list[Future] = []
        self._load_tasks: dict[str, Future] = {}
        self._import_tasks: list[Future] = []
        self._module_tasks: list[tuple[str, Future]] = []

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    @property
    def cache_dir(self) -> Path:
        return self.rules_root / MODULE_CACHE_DIR

    def resource_path(self, key: str) -> Path:
        return self.rules_root / key

    # -------------------------------------------------------------------------
    # Task spawning
    # -------------------------------------------------------------------------

    def load_resource_then_rule(self, image_path) -> Future:
        """Read a tile set image; once done its rules are loaded as well."""
        future = self._executor.submit(_read_resource, Path(image_path))
        self._resource_tasks.append(future)
        return future

    def try_load(self, resource: LoadedResource) -> bool:
        """
        Start loading a resource's tile set and rules.

        Returns:
            False if the resource is already loaded, loading, or failed before
        """
        key = resource.key
        if key in self.resources or key in self._load_tasks or key in self.failed_tasks:
            return False
        self._load_tasks[key] = self._executor.submit(
            _load_resource_rules,
            key,
            resource.data,
            self.resource_path(key),
            str(self.cache_dir),
            self.errors,
        )
        return True

    def import_rule_for_resource(self, key: str, rule_path) -> Future:
        """Import a rule file from anywhere on disk into a loaded resource."""
        future = self._executor.submit(_read_rule_file, key, Path(rule_path))
        self._import_tasks.append(future)
        return future

    def load_module(self, key: str, name: str, source: bytes) -> Future:
        """Compile a script module in the background and add it to `key`."""
        future = self._executor.submit(
            ScriptModule.from_source, source, name, str(self.cache_dir)
        )
        self._module_tasks.append((key, future))
        return future

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def has_pending_tasks(self) -> bool:
        return bool(
            self._resource_tasks or self._load_tasks or self._import_tasks or self._module_tasks
        )

    def is_loading(self, key: str) -> bool:
        return key in self._load_tasks

    def update(self, notifications: Notifications):
        """Poll finished tasks, chain follow-up work and surface errors."""
        self._poll_resource_tasks()
        self._poll_load_tasks()
        self._poll_import_tasks()
        self._poll_module_tasks()

        while True:
            try:
                message = self.errors.get_nowait()
            except queue.Empty:
                break
            notifications.error(message)

    def drain(self, notifications: Notifications, timeout: Optional[float] = None):
        """Tick until every task, including chained ones, has finished."""
        while self.has_pending_tasks():
            pending = (
                self._resource_tasks
                + list(self._load_tasks.values())
                + self._import_tasks
                + [future for _, future in self._module_tasks]
            )
            wait(pending, timeout=timeout)
            self.update(notifications)

    def shutdown(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _poll_resource_tasks(self):
        still_running = []
        for future in self._resource_tasks:
            if not future.done():
                still_running.append(future)
                continue
            try:
                resource = future.result()
            except Exception as e:
                self.errors.put(f"Failed to load resource: {e}")
                continue
            self.try_load(resource)
        self._resource_tasks = still_running

    def _poll_load_tasks(self):
        for key, future in list(self._load_tasks.items()):
            if not future.done():
                continue
            del self._load_tasks[key]
            try:
                self.resources[key] = future.result()
            except Exception as e:
                self.failed_tasks.add(key)
                self.errors.put(f"Failed to load rules for {key}: {e}")

    def _poll_import_tasks(self):
        still_running = []
        for future in self._import_tasks:
            if not future.done():
                still_running.append(future)
                continue
            try:
                imported = future.result()
                self._store_import(imported)
            except Exception as e:
                self.errors.put(f"Failed to import rule: {e}")
        self._import_tasks = still_running

    def _poll_module_tasks(self):
        still_running = []
        for key, future in self._module_tasks:
            if not future.done():
                still_running.append((key, future))
                continue
            try:
                module = future.result()
            except Exception as e:
                self.errors.put(f"Failed to load module: {e}")
                continue
            resource = self.resources.get(key)
            if resource is None:
                self.errors.put(f"Module {module.name} loaded for unknown resource {key}")
                continue
            resource.rules[module.name] = AutoMapperRule(
                module.name, module, SCRIPT_MODULE_EXTENSION
            )
        self._module_tasks = still_running

    def _store_import(self, imported: ImportedRule):
        resource = self.resources.get(imported.resource_key)
        if resource is None:
            raise AutoMapperError(f"resource {imported.resource_key} is not loaded")

        target_dir = self.resource_path(imported.resource_key)
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / imported.filename).write_bytes(imported.data)

        path = Path(imported.filename)
        if path.suffix == SCRIPT_MODULE_EXTENSION:
            self.load_module(imported.resource_key, path.stem, imported.data)
        else:
            resource.rules.update(imported.rules)

    # -------------------------------------------------------------------------
    # Rule management
    # -------------------------------------------------------------------------

    def rule_names(self, key: str) -> list[str]:
        resource = self.resources.get(key)
        return sorted(resource.rules) if resource else []

    def get_rule(self, key: str, name: str) -> Optional[AutoMapperRule]:
        resource = self.resources.get(key)
        return resource.rules.get(name) if resource else None

    def new_rule(self, key: str, name: str) -> AutoMapperRule:
        """Create, register and save an empty native rule (one empty run)."""
        rule = EditorRule()
        self.save_rule(key, name, rule)
        return self.resources[key].rules[name]

    def save_rule(self, key: str, name: str, rule: EditorRule) -> Path:
        """Persist a native rule under the resource and register it."""
        resource = self._require_resource(key)
        target_dir = self.resource_path(key)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}{EDITOR_RULE_EXTENSION}"
        _write_replacing(path, json.dumps(rule.to_dict(), indent=2).encode("utf-8"))
        resource.rules[name] = AutoMapperRule(name, rule, EDITOR_RULE_EXTENSION)
        return path

    def save_module(self, key: str, name: str, source: bytes) -> Path:
        """Persist a script module under the resource and compile it in the background."""
        self._require_resource(key)
        target_dir = self.resource_path(key)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}{SCRIPT_MODULE_EXTENSION}"
        _write_replacing(path, source)
        self.load_module(key, name, source)
        return path

    def _require_resource(self, key: str) -> ResourceRules:
        resource = self.resources.get(key)
        if resource is None:
            raise AutoMapperError(f"resource {key} is not loaded")
        return resource


def _write_replacing(path: Path, data: bytes):
    """Write through a sibling temp file so a failed save keeps the old file."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise


# =============================================================================
# Background task bodies
# =============================================================================

def _read_resource(path: Path) -> LoadedResource:
    data = path.read_bytes()
    name, digest = name_and_hash(path.stem, data)
    return LoadedResource(name, digest, data)


def _read_rule_file(key: str, path: Path) -> ImportedRule:
    if path.suffix not in RULE_EXTENSIONS:
        raise AutoMapperError(f"{path.name} is not a rule file")
    data = path.read_bytes()
    imported = ImportedRule(key, path.name, data)
    if path.suffix != SCRIPT_MODULE_EXTENSION:
        imported.rules = rules_from_bytes(path.stem, path.suffix, data)
    return imported


def _load_resource_rules(
    key: str,
    image_bytes: bytes,
    rules_dir: Path,
    cache_dir: str,
    errors: "queue.Queue[str]",
) -> ResourceRules:
    """Decode the tile set and every rule file of one resource.

    A rule file that fails to decode is reported on `errors` and skipped.
    """
    resource = ResourceRules(key, TilesetData.from_bytes(image_bytes))
    if not rules_dir.is_dir():
        return resource

    for path in sorted(rules_dir.iterdir()):
        if not path.is_file() or path.suffix not in RULE_EXTENSIONS:
            continue
        try:
            resource.rules.update(
                rules_from_bytes(path.stem, path.suffix, path.read_bytes(), cache_dir)
            )
        except (AutoMapperError, ValueError, OSError) as e:
            print(f"Warning: Failed to load rule {path}: {e}")
            errors.put(f"Failed to load rule {path.name}: {e}")

    return resource
