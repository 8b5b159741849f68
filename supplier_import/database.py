import os
from contextlib import asynccontextmanager
import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .models import Base

# Читаем DATABASE_URL из переменных окружения
DATABASE_URL = os.getenv("DATABASE_URL")

# Проверяем, что переменная окружения установлена
if not DATABASE_URL:
    raise ValueError("Переменная окружения DATABASE_URL не установлена")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 5,
        "max_overflow": 2,
        "pool_recycle": 300,
        "pool_timeout": 30,
        "pool_pre_ping": True,
    }


engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_async_db():
    """Контекстный менеджер для управления асинхронной сессией."""
    async_session = AsyncSessionLocal()
    try:
        yield async_session
        await async_session.commit()
    except Exception as e:
        await async_session.rollback()
        logging.error(f"🔥 Ошибка в сессии БД: {e}")
        raise
    finally:
        await async_session.close()
