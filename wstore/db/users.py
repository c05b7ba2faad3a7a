#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from wstore.utils import utc_now

from .StoreBase import StoreBase
from .constants import SENTINEL_USER_IDS
from .exceptions import UserExists, UserNotFound

logger = logging.getLogger(__name__)

__all__ = ["Users"]


class Users(StoreBase):

    # columns which can be changed with Users.edit
    EDITABLE_FIELDS = {"name", "email", "is_verified", "is_bot",
                       "author_page", "website", "about", "gender", "location"}

    def __init__(self, db):
        super().__init__(db)

        users = db.users
        self.sql = {
            ("insert", "users"):
                users.insert().returning(users.c.user_id),
            ("update", "users"):
                users.update()
                    .where(users.c.user_id == sa.bindparam("b_user_id"))
                    .where(users.c.deleted_at.is_(None))
                    .returning(users.c.user_id),
        }

    def _exists_error(self, name, email):
        return {
            "users_name_key": UserExists(f"user name '{name}' is already taken"),
            "users_email_key": UserExists(f"email '{email}' is already registered"),
        }

    def create(self, name, email, *, is_bot=False, is_special=False, is_verified=False):
        """
        Register a new user.

        :returns: the ID of the new user
        :raises UserExists: when the name or email is already registered
        """
        entry = {
            "name": name,
            "email": email.lower(),
            "is_bot": is_bot,
            "is_special": is_special,
            "is_verified": is_verified,
        }
        with self.db.engine.begin() as conn:
            try:
                user_id = conn.execute(self.sql["insert", "users"], entry).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, self._exists_error(name, entry["email"]))
        logger.info("Created user '{}' (ID {})".format(name, user_id))
        return user_id

    def _get(self, where, include_deleted):
        query = self.db.users.select().where(where)
        if include_deleted is False:
            query = query.where(self.db.users.c.deleted_at.is_(None))
        with self.db.engine.connect() as conn:
            return conn.execute(query).first()

    def get_by_id(self, user_id, *, include_deleted=False):
        return self._get(self.db.users.c.user_id == user_id, include_deleted)

    def get_by_name(self, name, *, include_deleted=False):
        return self._get(self.db.users.c.name == name, include_deleted)

    def get_by_email(self, email, *, include_deleted=False):
        return self._get(self.db.users.c.email == email.lower(), include_deleted)

    def edit(self, user_id, **fields):
        """
        Change the account or profile fields of an active user.

        :raises ValueError: for fields which cannot be edited
        :raises UserNotFound: when there is no active user with the ID
        :raises UserExists: when the new name or email is already registered
        """
        unknown = set(fields) - self.EDITABLE_FIELDS
        if unknown:
            raise ValueError("cannot edit user fields: {}".format(", ".join(sorted(unknown))))
        if not fields:
            logger.debug("Nothing to edit for user ID {}".format(user_id))
            return
        for key in ["email", "gender"]:
            if key in fields:
                fields[key] = fields[key].lower()

        with self.db.engine.begin() as conn:
            try:
                result = conn.execute(self.sql["update", "users"], {"b_user_id": user_id, **fields})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, self._exists_error(fields.get("name"), fields.get("email")))
            if result.first() is None:
                raise UserNotFound(f"user ID {user_id}")
        logger.info("Edited fields {} of user ID {}".format(sorted(fields), user_id))

    def verify(self, user_id):
        self.edit(user_id, is_verified=True)

    def delete(self, user_id):
        """
        Soft-delete a user. The row is kept so that the history stays
        attributed.

        :raises ValueError: for the sentinel accounts
        :raises UserNotFound: when there is no active user with the ID
        """
        if user_id in SENTINEL_USER_IDS:
            raise ValueError(f"sentinel account {user_id} cannot be deleted")
        with self.db.engine.begin() as conn:
            result = conn.execute(self.sql["update", "users"], {"b_user_id": user_id, "deleted_at": utc_now()})
            if result.first() is None:
                raise UserNotFound(f"user ID {user_id}")
        logger.info("Deleted user ID {}".format(user_id))

    @staticmethod
    def is_active(row):
        return row.deleted_at is None
