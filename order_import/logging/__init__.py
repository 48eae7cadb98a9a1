from .error_log import ErrorLogBuffer
from .init import LabeledFormatter, get_logger, log_summary, reset_logging, set_debug, setup_logging

__all__ = [
    "ErrorLogBuffer",
    "LabeledFormatter",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "setup_logging",
]
