#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from wstore.permissions import Permission
from wstore.utils import utc_now

from .StoreBase import StoreBase
from .exceptions import RoleExists, RoleNotFound, WikiNotFound, MembershipNotFound

logger = logging.getLogger(__name__)

__all__ = ["Roles"]


class Roles(StoreBase):
    """
    Named permission sets within a wiki and their assignment to members.
    """

    def __init__(self, db):
        super().__init__(db)

        roles = db.roles
        ins_rm = sa.dialects.postgresql.insert(db.role_membership)
        self.sql = {
            ("insert", "roles"):
                roles.insert().returning(roles.c.role_id),
            ("update", "roles"):
                roles.update()
                    .where(roles.c.role_id == sa.bindparam("b_role_id"))
                    .returning(roles.c.role_id),
            ("insert", "role_membership"):
                ins_rm.on_conflict_do_nothing()
                    .returning(db.role_membership.c.role_id),
        }

    def create(self, wiki_id, name, permissions):
        """
        :param permissions: an instance of :py:class:`wstore.permissions.Permission`
        :returns: the ID of the new role
        :raises RoleExists: when the wiki already has a role with the name
        """
        assert isinstance(permissions, Permission)
        with self.db.engine.begin() as conn:
            try:
                role_id = conn.execute(self.sql["insert", "roles"],
                                       {"wiki_id": wiki_id, "name": name, "permset": permissions}).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "roles_wiki_id_name_key": RoleExists(f"wiki ID {wiki_id} already has a role '{name}'"),
                    "roles_wiki_id_fkey": WikiNotFound(f"wiki ID {wiki_id}"),
                })
        logger.info("Created role '{}' (ID {}) in wiki ID {}".format(name, role_id, wiki_id))
        return role_id

    def get(self, role_id):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.roles.select().where(self.db.roles.c.role_id == role_id)).first()

    def get_by_name(self, wiki_id, name):
        roles = self.db.roles
        query = roles.select().where(roles.c.wiki_id == wiki_id).where(roles.c.name == name)
        with self.db.engine.connect() as conn:
            return conn.execute(query).first()

    def list(self, wiki_id):
        roles = self.db.roles
        query = roles.select().where(roles.c.wiki_id == wiki_id).order_by(roles.c.name)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def _update(self, role_id, values, errors=None):
        with self.db.engine.begin() as conn:
            try:
                result = conn.execute(self.sql["update", "roles"], {"b_role_id": role_id, **values})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, errors or {})
            if result.first() is None:
                raise RoleNotFound(f"role ID {role_id}")

    def set_permissions(self, role_id, permissions):
        assert isinstance(permissions, Permission)
        self._update(role_id, {"permset": permissions})
        logger.info("Set permissions of role ID {} to {}".format(role_id, permissions))

    def rename(self, role_id, name):
        self._update(role_id, {"name": name},
                     {"roles_wiki_id_name_key": RoleExists(f"the wiki already has a role '{name}'")})
        logger.info("Renamed role ID {} to '{}'".format(role_id, name))

    def delete(self, role_id):
        """
        Delete a role and all its memberships.
        """
        rm = self.db.role_membership
        roles = self.db.roles
        with self.db.engine.begin() as conn:
            conn.execute(rm.delete().where(rm.c.role_id == role_id))
            result = conn.execute(roles.delete().where(roles.c.role_id == role_id))
            if result.rowcount == 0:
                raise RoleNotFound(f"role ID {role_id}")
        logger.info("Deleted role ID {}".format(role_id))

    def add_member(self, role_id, user_id):
        """
        Assign a role to a member of the role's wiki. Assigning the same role
        twice has no effect.

        :returns: ``True`` if the role was assigned, ``False`` if the user
            already had it
        :raises RoleNotFound: when the role does not exist
        :raises MembershipNotFound: when the user is not a member of the wiki
        """
        roles = self.db.roles
        wm = self.db.wiki_membership
        with self.db.engine.begin() as conn:
            wiki_id = conn.execute(sa.select(roles.c.wiki_id).where(roles.c.role_id == role_id)).scalar()
            if wiki_id is None:
                raise RoleNotFound(f"role ID {role_id}")
            member = conn.execute(sa.select(wm.c.user_id)
                                    .where(wm.c.wiki_id == wiki_id)
                                    .where(wm.c.user_id == user_id)).first()
            if member is None:
                raise MembershipNotFound(f"user ID {user_id} is not a member of wiki ID {wiki_id}")
            entry = {
                "wiki_id": wiki_id,
                "role_id": role_id,
                "user_id": user_id,
                "applied_at": utc_now(),
            }
            result = conn.execute(self.sql["insert", "role_membership"], entry)
            added = result.first() is not None
        if added:
            logger.info("Assigned role ID {} to user ID {}".format(role_id, user_id))
        return added

    def remove_member(self, role_id, user_id):
        rm = self.db.role_membership
        with self.db.engine.begin() as conn:
            result = conn.execute(rm.delete().where(rm.c.role_id == role_id).where(rm.c.user_id == user_id))
            removed = result.rowcount > 0
        if removed:
            logger.info("Removed role ID {} from user ID {}".format(role_id, user_id))
        return removed

    def members(self, role_id):
        rm = self.db.role_membership
        query = rm.select().where(rm.c.role_id == role_id).order_by(rm.c.applied_at, rm.c.user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def user_roles(self, wiki_id, user_id):
        """
        :returns: rows of the ``roles`` table assigned to the user in the wiki
        """
        roles = self.db.roles
        rm = self.db.role_membership
        query = sa.select(roles) \
                  .select_from(roles.join(rm, roles.c.role_id == rm.c.role_id)) \
                  .where(rm.c.wiki_id == wiki_id) \
                  .where(rm.c.user_id == user_id) \
                  .order_by(roles.c.name)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()
