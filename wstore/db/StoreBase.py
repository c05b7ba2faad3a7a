#!/usr/bin/env python3

import sqlalchemy as sa

from .exceptions import constraint_name


class StoreBase:
    """
    Base class for the data-access classes in :py:mod:`wstore.db`.

    Subclasses prepare their statements in ``__init__`` and store them in the
    ``self.sql`` dict keyed by ``(action, table)`` tuples. Every public method
    runs in its own transaction.

    :param db: an instance of :py:class:`wstore.db.database.Database`
    """

    def __init__(self, db):
        self.db = db
        self.sql = {}

    @staticmethod
    def rewrap(exc, errors):
        """
        Translate an :py:class:`sqlalchemy.exc.IntegrityError` into a domain
        exception.

        :param exc: the caught exception
        :param dict errors:
            mapping of constraint names to the exception instances to raise
            instead
        :raises: the mapped exception, or ``exc`` itself if the violated
            constraint is not mapped
        """
        assert isinstance(exc, sa.exc.IntegrityError)
        error = errors.get(constraint_name(exc))
        if error is None:
            raise exc
        raise error from exc
