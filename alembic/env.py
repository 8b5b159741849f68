import logging
import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

from supplier_import.models import Base

load_dotenv()

config = context.config

# Таблица версий отдельная: база может быть общей с основным каталогом
VERSION_TABLE = "supplier_import_alembic_version"


def _sync_url(url: str) -> str:
    """Alembic работает через sync-драйвер: asyncpg -> psycopg2, aiosqlite -> pysqlite."""
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


db_url = os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check your .env or environment)")
db_url = _sync_url(db_url)
config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    try:
        fileConfig(config.config_file_name)
    except KeyError as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("alembic.runtime.migration").warning("Неполный alembic.ini (%s), basicConfig", e)

target_metadata = Base.metadata


def _include_object(obj, name, type_, reflected, compare_to):
    # Чужие таблицы общей базы автогенерация не трогает
    if type_ == "table" and reflected and compare_to is None:
        return name in target_metadata.tables
    return True


def _configure_kwargs(is_sqlite: bool) -> dict:
    return dict(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        include_object=_include_object,
        compare_type=True,
        render_as_batch=is_sqlite,
    )


def run_migrations_offline() -> None:
    context.configure(
        url=db_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(db_url.startswith("sqlite")),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(connection.dialect.name == "sqlite"))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
