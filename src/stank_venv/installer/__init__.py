"""Package set and job role installation engine.

``installer.sets`` and ``installer.roles`` depend on the application
context and are imported from their modules directly.
"""

from stank_venv.installer.executor import PackageInstaller, install_package
from stank_venv.installer.retry import install_with_retries

__all__ = ["PackageInstaller", "install_package", "install_with_retries"]
