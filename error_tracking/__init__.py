from .hooks import (
    get_reporter,
    init_error_tracking,
    log_error,
    track_component_errors,
    with_error_tracking,
)
from .reporter import ErrorReporter

__all__ = [
    "ErrorReporter",
    "get_reporter",
    "init_error_tracking",
    "log_error",
    "track_component_errors",
    "with_error_tracking",
]
