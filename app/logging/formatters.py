from typing import Any, Dict

from app.logging.log_levels import LogLevel

LEVEL_TAGS = {
    LogLevel.ERROR: "[ERROR]",
    LogLevel.WARNING: "[WARNING]",
    LogLevel.INFO: "[INFO]",
    LogLevel.REQUEST: "[REQUEST]",
    LogLevel.AUDIT: "[AUDIT]",
    LogLevel.GREAT: "[GREAT]",
}

# Never rendered into a log line, whatever the caller passes
REDACTED_KEYS = {"password", "new_password", "password_hash", "otp", "otp_code", "code", "token"}


def render_context(context: Dict[str, Any]) -> str:
    parts = []
    for key, value in context.items():
        if key in REDACTED_KEYS:
            value = "***"
        parts.append(f"{key}={value}")
    return " ".join(parts)


def format_message(level: LogLevel, message: str, context: Dict[str, Any]) -> str:
    """'[AUDIT] Account locked | email=a@b.com ip=10.0.0.1 attempts=5'"""
    tag = LEVEL_TAGS.get(level, "")
    rendered = render_context(context)
    if rendered:
        return f"{tag} {message} | {rendered}"
    return f"{tag} {message}"
