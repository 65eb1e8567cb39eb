import asyncio
from logging.config import fileConfig
from alembic import context
from openbook.config import settings
from openbook.database import Base, engine
import openbook.models  # noqa: F401 - register all models

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# compare_type: Numeric precision and enum changes show up in autogenerate
CONFIGURE_OPTS = {"target_metadata": Base.metadata, "compare_type": True}


def run_offline():
    context.configure(url=settings.DATABASE_URL, literal_binds=True, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection):
    context.configure(connection=connection, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


async def run_online():
    # the API engine
    async with engine.connect() as connection:
        await connection.run_sync(_migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
