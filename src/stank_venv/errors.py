"""Error handling for the environment manager."""
from typing import Any, Dict, Optional

from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST

from stank_venv.logging import get_logger

logger = get_logger(__name__)


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[Any] = None,
) -> None:
    """Log an error with context."""
    logger = logger or get_logger(__name__)

    error_info: Dict[str, Any] = {
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    if context:
        error_info["context"] = context
    if isinstance(error, StankVenvError):
        error_info["code"] = error.code
        error_info["details"] = error.details

    logger.error("operation_failed", **error_info)


class StankVenvError(Exception):
    """Base error class for the environment manager."""

    def __init__(
        self,
        message: str,
        code: int = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_error_data(self) -> ErrorData:
        """Convert to ErrorData format."""
        return ErrorData(code=self.code, message=str(self), data=self.details)


class ConfigurationError(StankVenvError):
    """Catalog or configuration missing or malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INVALID_REQUEST, details=details)


class NotFoundError(StankVenvError):
    """Referenced set, role, environment or session does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            f"{kind.capitalize()} '{identifier}' not found",
            code=INVALID_PARAMS,
            details={"kind": kind, "id": identifier},
        )
        self.kind = kind
        self.identifier = identifier


class AlreadyExistsError(StankVenvError):
    """Environment name collides with an existing environment."""

    def __init__(self, name: str, path: Any):
        super().__init__(
            f"Environment '{name}' already exists",
            code=INVALID_PARAMS,
            details={"name": name, "path": str(path)},
        )


class InvalidNameError(StankVenvError):
    """Environment name fails validation."""

    def __init__(self, name: str, reason: str):
        super().__init__(reason, code=INVALID_PARAMS, details={"name": name})


class TransientInstallError(StankVenvError):
    """Single package install attempt failed."""

    def __init__(self, package: str, output: str = ""):
        super().__init__(
            f"Install of {package} failed",
            code=INTERNAL_ERROR,
            details={"package": package, "output": output},
        )
        self.package = package
        self.output = output


class EnvironmentCreationError(StankVenvError):
    """Runtime creation primitive failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INTERNAL_ERROR, details=details)


class PersistenceError(StankVenvError):
    """Manifest or session state could not be read or written."""

    def __init__(self, message: str, path: Any = None):
        super().__init__(
            message,
            code=INTERNAL_ERROR,
            details={"path": str(path)} if path is not None else None,
        )
