"""Read-only queries over the catalog."""

from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from stank_venv.catalog.source import CatalogSource, FallbackCatalog
from stank_venv.types import JobRole, PackageSet


class Catalog:
    """Answers set, role and description queries for either catalog variant."""

    def __init__(self, source: CatalogSource, glossary: Optional[Mapping[str, str]] = None):
        self._source = source
        self._glossary = glossary if glossary is not None else MappingProxyType({})

    @property
    def is_fallback(self) -> bool:
        return isinstance(self._source, FallbackCatalog)

    @property
    def source(self) -> CatalogSource:
        return self._source

    def get_set(self, set_id: str) -> Optional[PackageSet]:
        return self._source.sets.get(set_id)

    def get_role(self, role_id: str) -> Optional[JobRole]:
        return self._source.roles.get(role_id)

    def set_packages(self, set_id: str) -> List[str]:
        """Packages of a set in declared order, empty when unknown."""
        package_set = self.get_set(set_id)
        return list(package_set.packages) if package_set else []

    def role_sets(self, role_id: str) -> List[str]:
        """Set identifiers of a role in install order, empty when unknown."""
        role = self.get_role(role_id)
        return list(role.sets) if role else []

    def describe(self, package: str) -> Optional[str]:
        return self._glossary.get(package) or None

    def union_packages(self, set_ids: Iterable[str]) -> List[str]:
        """Deduplicated, sorted union of the packages of several sets."""
        packages = set()
        for set_id in set_ids:
            packages.update(self.set_packages(set_id))
        return sorted(packages)

    def set_name(self, set_id: str) -> str:
        package_set = self.get_set(set_id)
        return package_set.name if package_set else set_id

    def role_name(self, role_id: str) -> str:
        role = self.get_role(role_id)
        return role.name if role else role_id

    def sets(self) -> List[PackageSet]:
        return [self._source.sets[k] for k in sorted(self._source.sets)]

    def roles(self) -> List[JobRole]:
        return [self._source.roles[k] for k in sorted(self._source.roles)]

    def role_package_count(self, role_id: str) -> int:
        return len(self.union_packages(self.role_sets(role_id)))
