#! /usr/bin/env python3

import logging

from wstore.db.database import Database

logger = logging.getLogger(__name__)


def init(db, *, upgrade=False):
    """
    Make sure the database is up to date. An empty database is populated by
    the :py:class:`Database` constructor, an existing one is only migrated
    when ``upgrade`` is set.
    """
    revision = db.current_revision()
    logger.info("The database is at revision {}".format(revision))
    if upgrade is True:
        db.upgrade("head")
        logger.info("The database was upgraded to revision {}".format(db.current_revision()))


if __name__ == "__main__":
    import wstore.config

    argparser = wstore.config.getArgParser(description="Create the wiki-store tables or migrate them to the latest revision")
    Database.set_argparser(argparser)

    argparser.add_argument("--upgrade", action="store_true", default=False,
            help="migrate an existing database to the latest revision (default: %(default)s)")

    args = wstore.config.parse_args(argparser)

    db = Database.from_argparser(args)
    init(db, upgrade=args.upgrade)
