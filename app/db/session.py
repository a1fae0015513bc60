from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str = DATABASE_URL, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, future=True, echo=settings.DATABASE_ECHO, **kwargs)


engine = build_engine()
SessionAsync = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

logger.info("Database engine configured", mode=settings.MODE, backend=engine.url.get_backend_name())
