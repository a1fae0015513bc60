"""
Custom logger with levelled helpers and key=value context.
Levels: warning, info, request, error, audit, great
"""
import logging
from typing import Any, Dict

from app.logging.formatters import format_message
from app.logging.log_levels import LogLevel

LOG_LEVEL_MAP = {
    LogLevel.WARNING: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.REQUEST: logging.INFO,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.AUDIT: logging.WARNING,
    LogLevel.GREAT: logging.INFO,
}


class CustomLogger:
    """
    Thin wrapper over a stdlib logger.

    Records propagate to the root logger configured by setup_logging(),
    and the raw context travels on the record as ``custom_data``.

    Usage:
        logger = CustomLogger("my_module")
        logger.info("User created", user_id=123)
        logger.error("Delivery failed", exc_info=True, email="a@b.com")
        logger.audit("Account locked", email="a@b.com", ip="10.0.0.1", attempts=5)
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: LogLevel,
        message: str,
        exc_info: bool = False,
        **context: Any
    ) -> None:
        self.logger.log(
            LOG_LEVEL_MAP[level],
            format_message(level, message, context),
            extra={"custom_data": {"level": level.value, **context}},
            exc_info=exc_info,
        )

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def request(
        self,
        message: str,
        method: str,
        path: str,
        status_code: int,
        duration: float,
        **context: Any
    ) -> None:
        """
        HTTP request line.

        Example:
            logger.request("API request", method="POST", path="/api/auth/login",
                           status_code=200, duration=0.152)
        """
        self._log(
            LogLevel.REQUEST,
            message,
            method=method,
            path=path,
            status_code=status_code,
            duration=duration,
            **context
        )

    def error(self, message: str, exc_info: bool = True, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **context)

    def audit(self, message: str, **context: Any) -> None:
        """Security-relevant event: lockouts, failed logins, OTP outcomes."""
        self._log(LogLevel.AUDIT, message, **context)

    def great(self, message: str, **context: Any) -> None:
        self._log(LogLevel.GREAT, message, **context)


_loggers: Dict[str, CustomLogger] = {}


def get_logger(name: str) -> CustomLogger:
    """
    Cached CustomLogger instance.

    Usage:
        from app.logging import get_logger
        logger = get_logger(__name__)
    """
    if name not in _loggers:
        _loggers[name] = CustomLogger(name)
    return _loggers[name]
