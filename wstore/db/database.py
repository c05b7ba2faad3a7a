#! /usr/bin/env python3

"""
Prerequisites:

1. A pre-configured PostgreSQL database backend with separate database and user
   account, e.g. created with `createdb -E UNICODE -O username dbname`.
2. The psycopg driver (or any other PostgreSQL driver supported by sqlalchemy).
"""

import logging
import os.path

import sqlalchemy as sa
import sqlalchemy.dialects.postgresql
import alembic.command
import alembic.config
import alembic.migration

from . import schema
from .constants import DEFAULT_USERS

logger = logging.getLogger(__name__)

__all__ = ["Database", "make_url", "create_default_users"]

MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "migrations")
ALEMBIC_INI = os.path.join(os.path.dirname(__file__), "../..", "alembic.ini")


def make_url(*, dialect="postgresql", driver="psycopg", user=None, password=None,
             host=None, port=None, database=None):
    """
    Create a :py:class:`sqlalchemy.engine.URL` for the given parameters.

    The format is basically "{dialect}+{driver}://{username}:{password}@{host}:{port}/{database}",
    but the URL class is suitable for omitting empty defaults.
    """
    # PostgreSQL defaults to dbname equal to the username, which may not be intended
    if database is None:
        raise ValueError("Cannot create database connection: database name cannot be None")
    return sa.engine.URL.create(f"{dialect}+{driver}",
                                username=user,
                                password=password,
                                host=host,
                                port=port,
                                database=database)


def create_default_users(conn, users):
    """
    Insert the sentinel accounts into the ``users`` table. Existing rows are
    left untouched.

    :param conn: a connection with an established transaction
    :param users: the ``users`` table
    """
    ins = sa.dialects.postgresql.insert(users).on_conflict_do_nothing(index_elements=[users.c.user_id])
    conn.execute(ins, DEFAULT_USERS)
    # explicit IDs do not advance the sequence
    conn.execute(sa.text(
        "SELECT setval(pg_get_serial_sequence('users', 'user_id'), "
        "(SELECT max(user_id) FROM users))"
    ))


class Database:
    """
    :param engine_or_url:
        either an existing :py:class:`sqlalchemy.engine.Engine` instance or a
        :py:class:`str` or :py:class:`sqlalchemy.engine.URL` representing the
        URL created by :py:func:`make_url`
    """

    def __init__(self, engine_or_url):
        if isinstance(engine_or_url, sa.engine.Engine):
            self.engine = engine_or_url
        else:
            self.engine = sa.create_engine(engine_or_url, echo=False)

        assert self.engine.name == "postgresql"

        self.metadata = sa.MetaData()
        schema.create_tables(self.metadata)

        insp = sa.inspect(self.engine)
        if not insp.get_table_names():
            self.init_database()

    def init_database(self):
        """
        Create all tables from scratch, insert the sentinel accounts and stamp
        the most recent alembic revision as "head". From now on the database
        will have to be migrated by alembic. From the cookbook:
        https://alembic.sqlalchemy.org/en/latest/cookbook.html#building-an-up-to-date-database-from-scratch
        """
        logger.info("Creating all tables in an empty database")
        with self.engine.begin() as conn:
            self.metadata.create_all(conn)
            create_default_users(conn, self.users)
            alembic.command.stamp(self.alembic_config(conn), "head")

    def alembic_config(self, connection=None):
        """
        Create an alembic configuration for the migrations shipped with
        wiki-store.

        :param connection:
            an optional connection which is handed over to the migration
            environment instead of connecting to the URL from the config file
        """
        ini = ALEMBIC_INI if os.path.isfile(ALEMBIC_INI) else None
        cfg = alembic.config.Config(ini)
        cfg.set_main_option("script_location", MIGRATIONS_DIR)
        if connection is not None:
            cfg.attributes["connection"] = connection
        return cfg

    def current_revision(self):
        """
        :returns: the alembic revision the database is stamped with, or ``None``
        """
        with self.engine.connect() as conn:
            context = alembic.migration.MigrationContext.configure(conn)
            return context.get_current_revision()

    def upgrade(self, revision="head"):
        """
        Migrate the database to the given alembic revision.
        """
        logger.info("Upgrading the database from revision {} to {}".format(self.current_revision(), revision))
        with self.engine.begin() as conn:
            alembic.command.upgrade(self.alembic_config(conn), revision)

    @staticmethod
    def set_argparser(argparser):
        """
        Add arguments for constructing a :py:class:`Database` object to an
        instance of :py:class:`argparse.ArgumentParser`.

        See also the :py:mod:`wstore.config` module.

        :param argparser: an instance of :py:class:`argparse.ArgumentParser`
        """
        group = argparser.add_argument_group(title="Database parameters")
        group.add_argument("--db-dialect", metavar="DIALECT", choices=["postgresql"], default="postgresql",
                help="an SQL dialect (default: %(default)s)")
        group.add_argument("--db-driver", metavar="DRIVER", default="psycopg",
                help="a driver for given SQL dialect supported by sqlalchemy (default: %(default)s)")
        group.add_argument("--db-user", metavar="USER",
                help="username for database connection (default: %(default)s)")
        group.add_argument("--db-password", metavar="PASSWORD",
                help="password for database connection (default: %(default)s)")
        group.add_argument("--db-host", metavar="HOST", default="localhost",
                help="hostname of the database server (default: %(default)s)")
        group.add_argument("--db-port", metavar="PORT", type=int,
                help="port on which the database server listens (default: %(default)s)")
        group.add_argument("--db-name", metavar="DATABASE",
                help="name of the database (default: %(default)s)")

    @classmethod
    def from_argparser(klass, args):
        """
        Construct a :py:class:`Database` object from arguments parsed by
        :py:class:`argparse.ArgumentParser`.

        :param args:
            an instance of :py:class:`argparse.Namespace`. It is assumed that it
            contains the arguments set by :py:meth:`Database.set_argparser`.
        :returns: an instance of :py:class:`Database`
        """
        url = make_url(dialect=args.db_dialect,
                       driver=args.db_driver,
                       user=args.db_user,
                       password=args.db_password,
                       host=args.db_host,
                       port=args.db_port,
                       database=args.db_name)
        return klass(url)

    def __getattr__(self, table_name):
        """
        Access an existing table in the database.

        :param str table_name: a (lowercase) name of the table
        :returns: a :py:class:`sqlalchemy.schema.Table` instance
        """
        # avoid infinite recursion before __init__ sets the attribute
        metadata = self.__dict__.get("metadata")
        if metadata is None or table_name not in metadata.tables:
            raise AttributeError("Table '{}' does not exist in the database.".format(table_name))
        return metadata.tables[table_name]
