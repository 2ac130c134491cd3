from .logging import DEFAULT_LOG_FILE, LOG_LEVELS, configure_logging, get_logger, resolve_log_level

__all__ = [
    "DEFAULT_LOG_FILE",
    "LOG_LEVELS",
    "configure_logging",
    "get_logger",
    "resolve_log_level",
]
