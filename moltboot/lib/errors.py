import logging
import sys

logger = logging.getLogger(__name__)


class MoltbootError(Exception):
    """Base exception for boot pipeline errors."""

    pass


class RestoreError(MoltbootError):
    """Raised when copying backup state into place fails."""

    pass


class ConfigError(MoltbootError):
    """Raised when the gateway configuration document cannot be read or written."""

    pass


class GatewayError(MoltbootError):
    """Raised when the gateway process cannot be launched."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def install_error_handler(source: str):
    original_hook = sys.excepthook

    def error_hook(exc_type, exc_value, exc_traceback):
        if exc_type.__name__ not in ("Exit", "Abort", "KeyboardInterrupt"):
            print(f"[{source}] {exc_type.__name__}: {str(exc_value)}", file=sys.stderr)

        original_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = error_hook


def log_error(stage: str, error: Exception, action: str = ""):
    if action:
        logger.warning(f"{stage}: {action}: {type(error).__name__}: {error}")
    else:
        logger.warning(f"{stage}: {type(error).__name__}: {error}")
