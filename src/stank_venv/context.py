"""Application context built once at startup and passed to every component."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from stank_venv.catalog import Catalog, load_catalog, load_glossary
from stank_venv.config import Config, bundled_data_file
from stank_venv.console import Console
from stank_venv.environments.manifest import ManifestStore
from stank_venv.environments.preflight import check_network
from stank_venv.installer.executor import PackageInstaller, install_package
from stank_venv.runtimes.python import upgrade_pip
from stank_venv.runtimes.runtime import VenvFactory
from stank_venv.types import Runtime

RuntimeFactory = Callable[[Path], Awaitable[Runtime]]


@dataclass
class AppContext:
    """Everything a command needs, with collaborators replaceable in tests."""
    config: Config
    catalog: Catalog
    console: Console
    manifests: ManifestStore = field(default_factory=ManifestStore)
    installer: PackageInstaller = install_package
    runtime_factory: Optional[RuntimeFactory] = None
    pip_upgrader: Callable[[Runtime], Awaitable[bool]] = upgrade_pip
    network_check: Optional[Callable[[], Awaitable[bool]]] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self):
        if self.runtime_factory is None:
            self.runtime_factory = VenvFactory(self.config.package_manager)
        if self.network_check is None:
            url = self.config.network_check_url
            self.network_check = lambda: check_network(url)


def build_catalog(config: Config) -> Catalog:
    source = load_catalog(config.packages_file, bundled=bundled_data_file("packages.json"))
    return Catalog(source, load_glossary(config.glossary_file))


def build_context(config: Config, console: Optional[Console] = None) -> AppContext:
    return AppContext(
        config=config,
        catalog=build_catalog(config),
        console=console or Console(),
    )
