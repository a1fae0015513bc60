from datetime import datetime, timezone

from app.core.config import settings


def isProductionMode() -> bool:
    return settings.MODE == "prod"


def utcnow() -> datetime:
    """Current time, timezone-aware UTC. Services take this as their default clock."""
    return datetime.now(timezone.utc)
