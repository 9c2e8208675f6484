"""Registry loader: reads custom opset YAML manifests into a local registry."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict

import yaml
from yaml import YAMLError

from ortmodel.events import SchemaRegistryLoaded, emit
from ortmodel.exceptions import SchemaRegistryError
from ortmodel.logs import get_logger

from .local import LocalSchemaRegistry
from .manifest import OpsetManifest

logger = get_logger("registry")

_registry_lock = threading.Lock()
_registry_cache: Dict[Path, LocalSchemaRegistry] = {}


def _iter_manifest_files(manifest_dir: Path):
    for path in sorted(manifest_dir.glob("*.yaml")):
        if path.is_file():
            yield path


def _load_manifest_file(path: Path) -> OpsetManifest:
    """Load a single manifest file.

    YAML with tab characters is re-parsed once with tabs replaced by two
    spaces before giving up.
    """
    raw_text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw_text) or {}
    except YAMLError as e:
        if "\t" not in raw_text:
            raise SchemaRegistryError(f"Invalid manifest {path.name}: {e}") from e
        logger.warning("Re-parsing manifest tabs->spaces: %s", path.name)
        try:
            data = yaml.safe_load(raw_text.replace("\t", "  ")) or {}
        except YAMLError as e2:
            raise SchemaRegistryError(
                f"Invalid manifest {path.name}: {e2}"
            ) from e2
    try:
        return OpsetManifest(**data)
    except Exception as e:  # noqa: BLE001
        raise SchemaRegistryError(f"Invalid manifest {path.name}: {e}") from e


def load_schema_manifests(
    manifest_dir: str | Path, name: str | None = None
) -> LocalSchemaRegistry:
    """Load every ``*.yaml`` manifest in a directory (thread-safe cache).

    A missing directory yields an empty registry.
    """
    root = Path(manifest_dir).resolve()
    with _registry_lock:
        if root in _registry_cache:
            return _registry_cache[root]
        registry = LocalSchemaRegistry(name=name or root.name)
        if root.is_dir():
            for mf in _iter_manifest_files(root):
                manifest = _load_manifest_file(mf)
                registry.register_opset(
                    manifest.domain,
                    manifest.baseline_opset_version,
                    manifest.opset_version,
                    manifest.to_schemas(),
                )
        _registry_cache[root] = registry
    logger.debug("Loaded schema manifests from %s: %s", root, registry.domains)
    emit(SchemaRegistryLoaded(manifest_dir=str(root), domains=registry.domains))
    return registry


def clear_manifest_cache(manifest_dir: str | Path | None = None) -> None:
    """Clear cached registries.

    If manifest_dir provided, clear only that entry; else clear all.
    """
    with _registry_lock:
        if manifest_dir is None:
            _registry_cache.clear()
        else:
            _registry_cache.pop(Path(manifest_dir).resolve(), None)
