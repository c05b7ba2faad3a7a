from alembic import context
import logging.config
import os
import sqlalchemy as sa

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# A connection is passed by wstore.db.database.Database, in which case the
# logging is already configured by the application.
shared_connection = config.attributes.get("connection")

# Interpret the config file for Python logging.
if shared_connection is None and config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)

# wiki-store's MetaData object for 'autogenerate' support
from wstore.db import schema
target_metadata = sa.MetaData()
schema.create_tables(target_metadata)

# get database connection URL from the wiki-store config
import wstore.config
from wstore.db.database import make_url
def get_url():
    wstore_config_path = os.path.expanduser(config.get_main_option("wstore_config_path"))
    parser = wstore.config.ConfigParser(wstore_config_path)
    conf = parser.fetch_section("alembic", to_list=False)
    port = conf.get("db-port")

    return make_url(dialect=conf.get("db-dialect", "postgresql"),
                    driver=conf.get("db-driver", "psycopg"),
                    user=conf["db-user"],
                    password=conf.get("db-password"),
                    host=conf.get("db-host", "localhost"),
                    port=int(port) if port else None,
                    database=conf["db-name"])


def run_migrations_offline():
    """Run migrations in 'offline' mode.

    This configures the context with just a URL
    and not an Engine, though an Engine is acceptable
    here as well.  By skipping the Engine creation
    we don't even need a DBAPI to be available.

    Calls to context.execute() here emit the given string to the
    script output.

    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode.

    In this scenario we need to create an Engine
    and associate a connection with the context.

    """
    if shared_connection is not None:
        context.configure(
            connection=shared_connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    connectable = sa.create_engine(get_url(), poolclass=sa.pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
