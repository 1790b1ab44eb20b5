"""Catalog sources: the loaded package document or the built-in fallback."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from stank_venv.errors import ConfigurationError
from stank_venv.logging import get_logger
from stank_venv.types import JobRole, PackageSet

logger = get_logger(__name__)

FALLBACK_SETS: Tuple[PackageSet, ...] = (
    PackageSet(
        id="jupyter",
        name="Jupyter",
        category="core",
        packages=("jupyterlab", "notebook", "ipykernel", "ipywidgets"),
    ),
    PackageSet(
        id="data_science",
        name="Data Science",
        category="data",
        packages=("numpy", "pandas", "matplotlib", "seaborn", "scikit-learn", "scipy"),
    ),
)


@dataclass(frozen=True)
class LoadedCatalog:
    """Catalog built from a package document"""
    sets: Mapping[str, PackageSet]
    roles: Mapping[str, JobRole]
    path: Optional[Path] = None


@dataclass(frozen=True)
class FallbackCatalog:
    """Minimal built-in catalog used when the document is unusable"""
    sets: Mapping[str, PackageSet] = field(
        default_factory=lambda: MappingProxyType({s.id: s for s in FALLBACK_SETS})
    )
    roles: Mapping[str, JobRole] = field(default_factory=lambda: MappingProxyType({}))
    reason: str = ""


CatalogSource = Union[LoadedCatalog, FallbackCatalog]


def _unique(items: Any) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for item in items:
        if isinstance(item, str) and item.strip():
            seen.setdefault(item.strip(), None)
    return tuple(seen)


def _parse_set(set_id: str, data: Any) -> PackageSet:
    if not isinstance(data, dict) or not isinstance(data.get("packages"), list):
        raise ConfigurationError(f"Package set '{set_id}' needs a packages list")
    return PackageSet(
        id=set_id,
        name=str(data.get("name") or set_id),
        category=str(data.get("category") or "other"),
        packages=_unique(data["packages"]),
    )


def _parse_role(role_id: str, data: Any) -> JobRole:
    if not isinstance(data, dict) or not isinstance(data.get("sets"), list):
        raise ConfigurationError(f"Job role '{role_id}' needs a sets list")
    return JobRole(
        id=role_id,
        name=str(data.get("name") or role_id),
        description=str(data.get("description") or ""),
        sets=_unique(data["sets"]),
        install_time=str(data.get("install_time") or "unknown"),
        disk_estimate=str(data.get("disk_estimate") or "unknown"),
    )


def parse_catalog(data: Any, path: Optional[Path] = None) -> LoadedCatalog:
    """Build a catalog from a decoded package document.

    Raises ConfigurationError when the document as a whole is unusable.
    Individual malformed sets or roles are skipped with a warning.
    """
    if not isinstance(data, dict) or not isinstance(data.get("package_sets"), dict):
        raise ConfigurationError("Catalog must contain a package_sets mapping")

    sets: Dict[str, PackageSet] = {}
    for set_id, raw in data["package_sets"].items():
        try:
            sets[set_id] = _parse_set(set_id, raw)
        except ConfigurationError as e:
            logger.warning("catalog_entry_skipped", kind="set", id=set_id, error=str(e))

    roles: Dict[str, JobRole] = {}
    raw_roles = data.get("job_roles") or {}
    if not isinstance(raw_roles, dict):
        logger.warning("catalog_roles_ignored", reason="job_roles is not a mapping")
        raw_roles = {}
    for role_id, raw in raw_roles.items():
        try:
            role = _parse_role(role_id, raw)
        except ConfigurationError as e:
            logger.warning("catalog_entry_skipped", kind="role", id=role_id, error=str(e))
            continue
        missing = [s for s in role.sets if s not in sets]
        if missing:
            logger.warning("catalog_role_unknown_sets", role=role_id, sets=missing)
        roles[role_id] = role

    return LoadedCatalog(sets=MappingProxyType(sets), roles=MappingProxyType(roles), path=path)


def read_catalog(path: Path) -> LoadedCatalog:
    """Read and parse a package document, raising ConfigurationError."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Package config not found: {path}", details={"path": str(path)}) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid package config {path}: {e}", details={"path": str(path)}) from e
    return parse_catalog(data, path)


def load_catalog(path: Path, bundled: Optional[Path] = None) -> CatalogSource:
    """Select the catalog variant once at startup.

    Tries ``path``, then the bundled document when ``path`` is missing,
    and finally falls back to the built-in sets instead of failing.
    """
    candidates = [path]
    if bundled is not None and bundled != path:
        candidates.append(bundled)

    reason = ""
    for candidate in candidates:
        if not candidate.exists() and candidate is not candidates[-1]:
            logger.warning("catalog_missing", path=str(candidate))
            continue
        try:
            catalog = read_catalog(candidate)
        except ConfigurationError as e:
            reason = str(e)
            logger.warning("catalog_unusable", path=str(candidate), error=reason)
            break
        logger.info(
            "catalog_loaded",
            path=str(candidate),
            sets=len(catalog.sets),
            roles=len(catalog.roles),
        )
        return catalog

    logger.warning("catalog_fallback", reason=reason)
    return FallbackCatalog(reason=reason)


def load_glossary(path: Optional[Path]) -> Mapping[str, str]:
    """Build the immutable package -> description mapping."""
    if path is None or not path.exists():
        logger.info("glossary_missing", path=str(path))
        return MappingProxyType({})
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("glossary_invalid", path=str(path), error=str(e))
        return MappingProxyType({})

    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        logger.warning("glossary_invalid", path=str(path), error="missing packages mapping")
        return MappingProxyType({})

    descriptions = {
        name: str(entry["description"])
        for name, entry in packages.items()
        if isinstance(entry, dict) and entry.get("description")
    }
    logger.info("glossary_loaded", path=str(path), count=len(descriptions))
    return MappingProxyType(descriptions)
