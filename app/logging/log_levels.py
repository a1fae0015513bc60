"""
Custom log levels used by CustomLogger
"""
from enum import Enum


class LogLevel(str, Enum):
    """Custom log levels"""
    WARNING = "warning"
    INFO = "info"
    REQUEST = "request"
    ERROR = "error"
    AUDIT = "audit"
    GREAT = "great"
