"""Runtime collaborators: interpreter discovery, venv creation, installs."""

from stank_venv.runtimes.python import (
    create_runtime,
    discover_interpreter,
    install_command,
    upgrade_pip,
    venv_python,
)
from stank_venv.runtimes.runtime import VenvFactory, runtime_for

__all__ = [
    "create_runtime",
    "discover_interpreter",
    "install_command",
    "runtime_for",
    "upgrade_pip",
    "VenvFactory",
    "venv_python",
]
