"""Runtime handles for environments."""

from pathlib import Path
from typing import Optional

from stank_venv.errors import EnvironmentCreationError
from stank_venv.runtimes.python import (
    CANDIDATES,
    ENV_SETUP,
    create_runtime,
    discover_interpreter,
    resolve_package_manager,
)
from stank_venv.types import Environment, Interpreter, Runtime


def runtime_for(environment: Environment, package_manager: str = "pip") -> Runtime:
    """Build the runtime handle of an existing environment."""
    manager = resolve_package_manager(package_manager)
    return Runtime(
        root=environment.root,
        python_bin=environment.python_bin,
        package_manager=manager,
        env_vars={**ENV_SETUP, "VIRTUAL_ENV": str(environment.root)},
    )


class VenvFactory:
    """Creates runtimes with the discovered host interpreter."""

    def __init__(self, package_manager: str = "pip", interpreter: Optional[Interpreter] = None):
        self.package_manager = package_manager
        self.interpreter = interpreter

    async def __call__(self, path: Path) -> Runtime:
        if self.interpreter is None:
            self.interpreter = await discover_interpreter()
        if self.interpreter is None:
            raise EnvironmentCreationError(
                "Python 3.11+ not found",
                details={"candidates": list(CANDIDATES)},
            )
        return await create_runtime(
            self.interpreter, path, resolve_package_manager(self.package_manager)
        )
