import logging
import os
from pathlib import Path

LOG_DIR = Path(os.environ.get("TRANSLATEBRIDGE_LOG_DIR", Path(__file__).resolve().parent.parent.parent / "logs"))
LOG_FILE = LOG_DIR / "app.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_MODE = 'info'

# Cache for log mode to avoid repeated config reads
_log_mode_cache = None


def _get_log_mode():
    """Get log mode from configuration."""
    global _log_mode_cache
    if _log_mode_cache is not None:
        return _log_mode_cache

    try:
        from translatebridge.config import load_config
        config = load_config()
        log_mode = config.get('log_mode', DEFAULT_LOG_MODE)
        _log_mode_cache = log_mode
        return log_mode
    except (ImportError, AttributeError):
        # Config module still initialising
        return DEFAULT_LOG_MODE


def _levels_for_mode(log_mode: str):
    """Return (logger_level, console_level) for a log mode."""
    if log_mode == 'debug':
        return logging.DEBUG, logging.DEBUG
    if log_mode == 'off':
        # Level higher than CRITICAL disables everything
        return logging.CRITICAL + 1, logging.CRITICAL + 1
    return logging.INFO, logging.INFO


def _file_handler() -> logging.FileHandler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    f_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    f_handler.setLevel(logging.DEBUG)
    f_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return f_handler


def _apply_mode(logger: logging.Logger, log_mode: str, with_file: bool) -> None:
    """Sync a logger's level and handlers with the log mode."""
    logger_level, console_level = _levels_for_mode(log_mode)
    logger.setLevel(logger_level)

    has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    if with_file and log_mode != 'off' and not has_file_handler:
        try:
            logger.addHandler(_file_handler())
        except OSError:
            # Read-only install location, console logging still works
            pass
    elif log_mode == 'off' and has_file_handler:
        for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
            handler.close()
            logger.removeHandler(handler)

    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(console_level)


def _clear_log_mode_cache():
    """Clear the log mode cache and update all existing loggers (call this when config is updated)."""
    global _log_mode_cache
    _log_mode_cache = None

    log_mode = _get_log_mode()
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        if not logger_name.startswith('translatebridge'):
            continue
        logger = logging.getLogger(logger_name)
        # Only loggers created by get_logger carry handlers
        if logger.handlers:
            _apply_mode(logger, log_mode, with_file=_file_logging_enabled())


def _file_logging_enabled() -> bool:
    return os.environ.get("TRANSLATEBRIDGE_LOG_TO_FILE", "1").lower() not in ("0", "false", "no")


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    log_mode = _get_log_mode()

    # Prevent duplicate handlers if logger already configured
    if logger.handlers:
        _apply_mode(logger, log_mode, with_file=_file_logging_enabled())
        return logger

    c_handler = logging.StreamHandler()
    c_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(c_handler)

    _apply_mode(logger, log_mode, with_file=_file_logging_enabled())
    return logger
