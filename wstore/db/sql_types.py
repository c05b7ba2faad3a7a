#! /usr/bin/env python3

"""
Custom types with automatic convertors.

All timestamps are stored as ``TIMESTAMP WITH TIME ZONE``. PostgreSQL stores
them internally in UTC and converts them to the session time zone on output,
so the convertor normalizes the values to UTC on the Python side to avoid
surprises when the server or the session is configured with a different
time zone.

Permission sets are stored as ``JSONB`` objects, see :py:mod:`wstore.permissions`
for the encoding.
"""

import datetime

import sqlalchemy.types as types
from sqlalchemy.dialects.postgresql import JSONB

from wstore import permissions
from wstore.utils import ensure_utc


class UTCDateTime(types.TypeDecorator):
    """
    Convertor for TIMESTAMP WITH TIME ZONE which only accepts aware datetimes
    and always returns them in UTC.
    """

    impl = types.DateTime(timezone=True)

    cache_ok = True

    def process_bind_param(self, value, dialect):
        """
        Python -> database
        """
        if value is None:
            return value
        assert isinstance(value, datetime.datetime), value
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        """
        database -> python
        """
        if value is None:
            return value
        assert isinstance(value, datetime.datetime)
        return value.astimezone(datetime.UTC)


class PermissionSet(types.TypeDecorator):
    """
    Represents a :py:class:`wstore.permissions.Permission` as a JSON object.
    """

    impl = JSONB

    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            value = permissions.to_json(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = permissions.from_json(value)
        return value
