"""Package set and job role catalog."""

from stank_venv.catalog.accessor import Catalog
from stank_venv.catalog.source import (
    CatalogSource,
    FallbackCatalog,
    LoadedCatalog,
    load_catalog,
    load_glossary,
    parse_catalog,
)

__all__ = [
    "Catalog",
    "CatalogSource",
    "FallbackCatalog",
    "LoadedCatalog",
    "load_catalog",
    "load_glossary",
    "parse_catalog",
]
