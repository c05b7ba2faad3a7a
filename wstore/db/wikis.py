#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from wstore.utils import normalize_slug, utc_now, ensure_utc

from .StoreBase import StoreBase
from .exceptions import WikiExists, WikiNotFound, UserNotFound, MembershipExists, MembershipNotFound

logger = logging.getLogger(__name__)

__all__ = ["Wikis"]

# range of the SMALLINT column
MAX_PAGE_LOCK_DURATION = 2**15 - 1


def _check_page_lock_duration(seconds):
    if not 0 < seconds <= MAX_PAGE_LOCK_DURATION:
        raise ValueError("page lock duration must be between 1 and {} seconds, got {}"
                         .format(MAX_PAGE_LOCK_DURATION, seconds))


class Wikis(StoreBase):

    def __init__(self, db):
        super().__init__(db)

        wikis = db.wikis
        wm = db.wiki_membership
        self.sql = {
            ("insert", "wikis"):
                wikis.insert().returning(wikis.c.wiki_id),
            ("update", "wikis"):
                wikis.update()
                    .where(wikis.c.wiki_id == sa.bindparam("b_wiki_id"))
                    .returning(wikis.c.wiki_id),
            ("insert", "wiki_settings"):
                db.wiki_settings.insert(),
            ("update", "wiki_settings"):
                db.wiki_settings.update()
                    .where(db.wiki_settings.c.wiki_id == sa.bindparam("b_wiki_id"))
                    .returning(db.wiki_settings.c.wiki_id),
            ("insert", "wiki_membership"):
                wm.insert(),
            ("update", "wiki_membership"):
                wm.update()
                    .where(wm.c.wiki_id == sa.bindparam("b_wiki_id"))
                    .where(wm.c.user_id == sa.bindparam("b_user_id"))
                    .returning(wm.c.user_id),
        }

    @staticmethod
    def _exists_error(slug, domain):
        return {
            "wikis_slug_key": WikiExists(f"wiki slug '{slug}' is already taken"),
            "wikis_domain_key": WikiExists(f"domain '{domain}' is already used by another wiki"),
        }

    def create(self, name, slug, domain, *, page_lock_duration=900):
        """
        Create a new wiki together with its settings.

        :param str slug: normalized with :py:func:`wstore.utils.normalize_slug`
        :param str domain: stored in lower case
        :param int page_lock_duration: in seconds
        :returns: the ID of the new wiki
        :raises WikiExists: when the slug or domain is already taken
        """
        _check_page_lock_duration(page_lock_duration)
        slug = normalize_slug(slug)
        domain = domain.lower()
        with self.db.engine.begin() as conn:
            try:
                wiki_id = conn.execute(self.sql["insert", "wikis"],
                                       {"name": name, "slug": slug, "domain": domain}).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, self._exists_error(slug, domain))
            conn.execute(self.sql["insert", "wiki_settings"],
                         {"wiki_id": wiki_id, "page_lock_duration": page_lock_duration})
        logger.info("Created wiki '{}' (slug '{}', ID {})".format(name, slug, wiki_id))
        return wiki_id

    def get_by_id(self, wiki_id):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.wikis.select().where(self.db.wikis.c.wiki_id == wiki_id)).first()

    def get_by_slug(self, slug):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.wikis.select().where(self.db.wikis.c.slug == slug)).first()

    def list(self):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.wikis.select().order_by(self.db.wikis.c.wiki_id)).all()

    def _update(self, wiki_id, values, errors=None):
        with self.db.engine.begin() as conn:
            try:
                result = conn.execute(self.sql["update", "wikis"], {"b_wiki_id": wiki_id, **values})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, errors or {})
            if result.first() is None:
                raise WikiNotFound(f"wiki ID {wiki_id}")

    def edit(self, wiki_id, *, name=None, slug=None):
        """
        Change the name and/or the slug of a wiki. An edit without any
        change is logged and ignored.

        :param str slug: normalized with :py:func:`wstore.utils.normalize_slug`
        :raises WikiExists: when the slug is already taken
        :raises WikiNotFound: when the wiki does not exist
        """
        values = {}
        if name is not None:
            values["name"] = name
        if slug is not None:
            values["slug"] = normalize_slug(slug)
        if not values:
            logger.warning("Edit of wiki ID {} has no changes, ignoring".format(wiki_id))
            return
        self._update(wiki_id, values, self._exists_error(values.get("slug"), None))
        logger.info("Edited wiki ID {}: {}".format(wiki_id, values))

    def rename(self, wiki_id, name):
        self.edit(wiki_id, name=name)

    def set_domain(self, wiki_id, domain):
        domain = domain.lower()
        self._update(wiki_id, {"domain": domain}, self._exists_error(None, domain))
        logger.info("Changed domain of wiki ID {} to '{}'".format(wiki_id, domain))

    def get_settings(self, wiki_id):
        """
        :raises WikiNotFound: when the wiki does not exist
        """
        query = self.db.wiki_settings.select().where(self.db.wiki_settings.c.wiki_id == wiki_id)
        with self.db.engine.connect() as conn:
            settings = conn.execute(query).first()
        if settings is None:
            raise WikiNotFound(f"wiki ID {wiki_id}")
        return settings

    def set_page_lock_duration(self, wiki_id, seconds):
        _check_page_lock_duration(seconds)
        with self.db.engine.begin() as conn:
            result = conn.execute(self.sql["update", "wiki_settings"],
                                  {"b_wiki_id": wiki_id, "page_lock_duration": seconds})
            if result.first() is None:
                raise WikiNotFound(f"wiki ID {wiki_id}")
        logger.info("Set page lock duration of wiki ID {} to {} seconds".format(wiki_id, seconds))

    # memberships

    def join(self, wiki_id, user_id, *, applied_at=None):
        """
        Add a user to a wiki. The membership starts now.

        :param applied_at: time of the application, defaults to now
        :raises MembershipExists: when the user is already a member
        """
        now = utc_now()
        entry = {
            "wiki_id": wiki_id,
            "user_id": user_id,
            "applied_at": applied_at or now,
            "joined_at": now,
        }
        with self.db.engine.begin() as conn:
            try:
                conn.execute(self.sql["insert", "wiki_membership"], entry)
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "wiki_membership_pkey": MembershipExists(f"user ID {user_id} is already a member of wiki ID {wiki_id}"),
                    "wiki_membership_wiki_id_fkey": WikiNotFound(f"wiki ID {wiki_id}"),
                    "wiki_membership_user_id_fkey": UserNotFound(f"user ID {user_id}"),
                })
        logger.info("User ID {} joined wiki ID {}".format(user_id, wiki_id))

    def get_membership(self, wiki_id, user_id):
        wm = self.db.wiki_membership
        query = wm.select().where(wm.c.wiki_id == wiki_id).where(wm.c.user_id == user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).first()

    def members(self, wiki_id):
        wm = self.db.wiki_membership
        query = wm.select().where(wm.c.wiki_id == wiki_id).order_by(wm.c.joined_at, wm.c.user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def _update_membership(self, wiki_id, user_id, values):
        with self.db.engine.begin() as conn:
            result = conn.execute(self.sql["update", "wiki_membership"],
                                  {"b_wiki_id": wiki_id, "b_user_id": user_id, **values})
            if result.first() is None:
                raise MembershipNotFound(f"user ID {user_id} is not a member of wiki ID {wiki_id}")

    def ban(self, wiki_id, user_id, *, until=None):
        """
        Ban a member of the wiki.

        :param until: end of the ban, ``None`` means an indefinite ban
        :raises ValueError: when ``until`` is not in the future
        """
        now = utc_now()
        if until is not None and ensure_utc(until) <= now:
            raise ValueError("the end of a ban must be in the future")
        self._update_membership(wiki_id, user_id, {"banned_at": now, "banned_until": until})
        logger.info("Banned user ID {} in wiki ID {} until {}".format(
            user_id, wiki_id, until.isoformat() if until else "further notice"))

    def unban(self, wiki_id, user_id):
        self._update_membership(wiki_id, user_id, {"banned_at": None, "banned_until": None})
        logger.info("Unbanned user ID {} in wiki ID {}".format(user_id, wiki_id))

    def leave(self, wiki_id, user_id):
        """
        Remove a user from the wiki, including their roles in it.
        """
        wm = self.db.wiki_membership
        rm = self.db.role_membership
        with self.db.engine.begin() as conn:
            conn.execute(rm.delete().where(rm.c.wiki_id == wiki_id).where(rm.c.user_id == user_id))
            result = conn.execute(wm.delete().where(wm.c.wiki_id == wiki_id).where(wm.c.user_id == user_id))
            if result.rowcount == 0:
                raise MembershipNotFound(f"user ID {user_id} is not a member of wiki ID {wiki_id}")
        logger.info("User ID {} left wiki ID {}".format(user_id, wiki_id))

    @staticmethod
    def is_banned(membership, at=None):
        """
        Evaluate the ban window of a membership row.

        :param at: the time to check, defaults to now
        """
        if membership.banned_at is None:
            return False
        at = utc_now() if at is None else ensure_utc(at)
        if at < membership.banned_at:
            return False
        if membership.banned_until is None:
            return True
        return at < membership.banned_until
