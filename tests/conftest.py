import io
import json
from pathlib import Path

import pytest

from stank_venv.catalog import Catalog, load_catalog, load_glossary
from stank_venv.config import Config
from stank_venv.console import Console
from stank_venv.context import AppContext
from stank_venv.environments.manifest import ManifestStore
from stank_venv.logging import configure_logging
from stank_venv.runtimes.python import ENV_SETUP, venv_python
from stank_venv.types import Environment, InstallResult, Runtime

CATALOG = {
    "package_sets": {
        "jupyter": {
            "name": "Jupyter Core",
            "category": "core",
            "packages": ["jupyterlab", "notebook", "ipykernel"],
        },
        "data_science": {
            "name": "Data Science",
            "category": "data",
            "packages": ["numpy", "pandas", "matplotlib", "scikit-learn", "scipy"],
        },
        "visualization": {
            "name": "Visualization",
            "category": "data",
            "packages": ["matplotlib", "seaborn", "plotly"],
        },
        "machine_learning": {
            "name": "Machine Learning",
            "category": "ml",
            "packages": ["scikit-learn", "xgboost"],
        },
    },
    "job_roles": {
        "data_scientist": {
            "name": "Data Scientist",
            "description": "Analysis, modelling and notebooks",
            "sets": ["jupyter", "data_science", "visualization", "machine_learning"],
            "install_time": "10-15 minutes",
            "disk_estimate": "3 GB",
        },
        "starter": {
            "name": "Notebook Starter",
            "description": "Notebooks plus the core data stack",
            "sets": ["jupyter", "data_science"],
        },
        "analyst": {
            "name": "Data Analyst",
            "description": "Dashboards and reports",
            "sets": ["data_science", "visualization", "data_science"],
        },
    },
}

GLOSSARY = {
    "packages": {
        "numpy": {"description": "Fast N-dimensional arrays and numerical computing"},
        "pandas": {"description": "DataFrames for tabular data"},
        "jupyterlab": {"description": "Browser-based notebook IDE"},
    }
}


class FakeInstaller:
    """Records install attempts; packages in ``fail`` never install.

    ``flaky`` maps a package to the number of attempts that fail before
    one succeeds.
    """

    def __init__(self, fail=(), flaky=None):
        self.fail = set(fail)
        self.flaky = dict(flaky or {})
        self.calls = []

    async def __call__(self, runtime: Runtime, package: str) -> InstallResult:
        self.calls.append(package)
        if package in self.fail:
            return InstallResult(package=package, success=False, elapsed=0.01, error="boom")
        if self.flaky.get(package, 0) > 0:
            self.flaky[package] -= 1
            return InstallResult(package=package, success=False, elapsed=0.01, error="Read timed out")
        return InstallResult(package=package, success=True, elapsed=0.01)

    def attempts(self, package: str) -> int:
        return self.calls.count(package)


def make_venv(root: Path, version: str = "3.11.9") -> Path:
    python_bin = venv_python(root)
    python_bin.parent.mkdir(parents=True, exist_ok=True)
    python_bin.write_text("#!/bin/sh\n")
    (root / "pyvenv.cfg").write_text(f"home = /usr/bin\ninclude-system-site-packages = false\nversion = {version}\n")
    return python_bin


class FakeRuntimeFactory:
    """Lays out a minimal venv directory instead of running ``python -m venv``."""

    def __init__(self, version: str = "3.11.9"):
        self.version = version
        self.created = []

    async def __call__(self, path: Path) -> Runtime:
        python_bin = make_venv(path, self.version)
        self.created.append(path)
        return Runtime(root=path, python_bin=python_bin, env_vars=dict(ENV_SETUP))


async def no_sleep(_: float) -> None:
    return None


async def network_up() -> bool:
    return True


async def pip_ok(_: Runtime) -> bool:
    return True


@pytest.fixture(autouse=True)
def logging_setup():
    configure_logging("WARNING")


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "packages.json"
    path.write_text(json.dumps(CATALOG))
    return path


@pytest.fixture
def glossary_file(tmp_path: Path) -> Path:
    path = tmp_path / "glossary.json"
    path.write_text(json.dumps(GLOSSARY))
    return path


@pytest.fixture
def config(tmp_path: Path, catalog_file: Path, glossary_file: Path) -> Config:
    return Config(
        venv_dir=tmp_path / "venvs",
        projects_dir=tmp_path / "projects",
        packages_file=catalog_file,
        glossary_file=glossary_file,
        retry_delay=0.0,
        min_disk_gb=0.0,
        full_install_disk_gb=0.0,
    )


@pytest.fixture
def catalog(config: Config) -> Catalog:
    return Catalog(load_catalog(config.packages_file), load_glossary(config.glossary_file))


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def runtime_factory() -> FakeRuntimeFactory:
    return FakeRuntimeFactory()


@pytest.fixture
def ctx(config, catalog, output, installer, runtime_factory) -> AppContext:
    return AppContext(
        config=config,
        catalog=catalog,
        console=Console(stream=output, color=False),
        manifests=ManifestStore(),
        installer=installer,
        runtime_factory=runtime_factory,
        pip_upgrader=pip_ok,
        network_check=network_up,
        sleep=no_sleep,
    )


@pytest.fixture
def environment(config: Config) -> Environment:
    root = config.venv_dir / "demo"
    python_bin = make_venv(root)
    return Environment(name="demo", root=root, python_bin=python_bin, runtime_version="3.11.9")


@pytest.fixture
def runtime(environment: Environment) -> Runtime:
    return Runtime(root=environment.root, python_bin=environment.python_bin)
