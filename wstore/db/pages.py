#!/usr/bin/env python3

"""
Pages, their revisions and the metadata attached to them.

Page contents are kept in an external git repository. Every change of a page
is committed there first by the caller and then recorded here as a revision
referencing the commit.
"""

import datetime
import logging
import re
from typing import NamedTuple

import sqlalchemy as sa

from wstore.utils import is_valid_slug, normalize_tags, tag_diff, utc_now

from .StoreBase import StoreBase
from .constants import GIT_COMMIT_PATTERN, ChangeType, AuthorType
from .exceptions import \
        PageExists, PageNotFound, PageLocked, RevisionNotFound, WikiNotFound, UserNotFound

logger = logging.getLogger(__name__)

__all__ = ["PageCommit", "UNSET", "Pages"]

_git_commit_re = re.compile(GIT_COMMIT_PATTERN)


class PageCommit(NamedTuple):
    """Identifies the page being changed and describes the change."""
    wiki_id: int
    slug: str
    message: str
    user_id: int


class _Unset:
    def __repr__(self):
        return "UNSET"

# distinguishes "not given" from None for nullable columns
UNSET = _Unset()


def _check_slug(slug):
    if not is_valid_slug(slug):
        raise ValueError(f"invalid page slug: '{slug}'")


def _check_git_commit(git_commit):
    if _git_commit_re.fullmatch(git_commit) is None:
        raise ValueError(f"invalid git commit hash: '{git_commit}'")


class Pages(StoreBase):

    def __init__(self, db):
        super().__init__(db)

        pages = db.pages
        revisions = db.revisions
        ins_parents = sa.dialects.postgresql.insert(db.parents)
        ins_authors = sa.dialects.postgresql.insert(db.authors)

        self.sql = {
            ("select", "live_page"):
                sa.select(pages.c.page_id, pages.c.tags)
                    .where(pages.c.wiki_id == sa.bindparam("b_wiki_id"))
                    .where(pages.c.slug == sa.bindparam("b_slug"))
                    .where(pages.c.deleted_at.is_(None)),
            ("insert", "pages"):
                pages.insert().returning(pages.c.page_id),
            ("update", "pages"):
                pages.update()
                    .where(pages.c.page_id == sa.bindparam("b_page_id")),
            ("insert", "revisions"):
                revisions.insert().returning(revisions.c.revision_id),
            ("insert", "tag_history"):
                db.tag_history.insert(),
            ("insert", "parents"):
                ins_parents.on_conflict_do_nothing()
                    .returning(db.parents.c.page_id),
            ("insert", "authors"):
                ins_authors.on_conflict_do_nothing()
                    .returning(db.authors.c.page_id),
        }

    # lookups

    def _live_page(self, conn, wiki_id, slug):
        row = conn.execute(self.sql["select", "live_page"], {"b_wiki_id": wiki_id, "b_slug": slug}).first()
        if row is None:
            raise PageNotFound(f"no page '{slug}' in wiki ID {wiki_id}")
        return row

    def get_page_id(self, wiki_id, slug):
        """
        :returns: the ID of the live page with the slug, or ``None``
        """
        with self.db.engine.connect() as conn:
            row = conn.execute(self.sql["select", "live_page"], {"b_wiki_id": wiki_id, "b_slug": slug}).first()
        return None if row is None else row.page_id

    def check_page(self, wiki_id, slug):
        """
        :returns: ``True`` if a live page with the slug exists in the wiki
        """
        return self.get_page_id(wiki_id, slug) is not None

    def get_page(self, wiki_id, slug):
        pages = self.db.pages
        query = pages.select() \
                     .where(pages.c.wiki_id == wiki_id) \
                     .where(pages.c.slug == slug) \
                     .where(pages.c.deleted_at.is_(None))
        with self.db.engine.connect() as conn:
            return conn.execute(query).first()

    def get_page_by_id(self, page_id):
        """
        Unlike the other lookups, this also returns deleted pages.
        """
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.pages.select().where(self.db.pages.c.page_id == page_id)).first()

    # changes

    def _add_revision(self, conn, page_id, commit, git_commit, change_type):
        entry = {
            "page_id": page_id,
            "user_id": commit.user_id,
            "message": commit.message,
            "git_commit": git_commit,
            "change_type": change_type.value,
        }
        try:
            revision_id = conn.execute(self.sql["insert", "revisions"], entry).scalar_one()
        except sa.exc.IntegrityError as e:
            self.rewrap(e, {"revisions_user_id_fkey": UserNotFound(f"user ID {commit.user_id}")})
        logger.debug("Recorded {} revision {} of page ID {} (commit {})".format(
            change_type.value, revision_id, page_id, git_commit))
        return revision_id

    def _slug_taken(self, commit, slug=None):
        return PageExists("page '{}' already exists in wiki ID {}".format(slug or commit.slug, commit.wiki_id))

    def create(self, commit, git_commit, title, alt_title=None):
        """
        Create a new page.

        :param PageCommit commit: the page and the change description
        :param str git_commit: hash of the commit adding the page contents
        :returns: a tuple ``(page_id, revision_id)``
        :raises PageExists: when a live page with the slug already exists
        """
        _check_slug(commit.slug)
        _check_git_commit(git_commit)
        entry = {
            "wiki_id": commit.wiki_id,
            "slug": commit.slug,
            "title": title,
            "alt_title": alt_title,
        }
        with self.db.engine.begin() as conn:
            try:
                page_id = conn.execute(self.sql["insert", "pages"], entry).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "pages_live_slug": self._slug_taken(commit),
                    "pages_wiki_id_fkey": WikiNotFound(f"wiki ID {commit.wiki_id}"),
                })
            revision_id = self._add_revision(conn, page_id, commit, git_commit, ChangeType.CREATE)
        logger.info("Created page '{}' (ID {}) in wiki ID {}".format(commit.slug, page_id, commit.wiki_id))
        return page_id, revision_id

    def commit(self, commit, git_commit, *, title=None, alt_title=UNSET):
        """
        Record a modification of a page, optionally changing its titles.

        :param title: the new title, ``None`` keeps the current one
        :param alt_title: the new alternative title, ``None`` clears it
        :returns: the revision ID
        """
        _check_git_commit(git_commit)
        values = {}
        if title is not None:
            values["title"] = title
        if alt_title is not UNSET:
            values["alt_title"] = alt_title
        with self.db.engine.begin() as conn:
            page_id = self._live_page(conn, commit.wiki_id, commit.slug).page_id
            if values:
                conn.execute(self.sql["update", "pages"], {"b_page_id": page_id, **values})
            revision_id = self._add_revision(conn, page_id, commit, git_commit, ChangeType.MODIFY)
        logger.info("Modified page '{}' (ID {})".format(commit.slug, page_id))
        return revision_id

    def rename(self, commit, git_commit, new_slug):
        """
        Move a page to a new slug.

        :returns: the revision ID
        :raises PageExists: when a live page with the new slug exists
        """
        _check_slug(new_slug)
        _check_git_commit(git_commit)
        with self.db.engine.begin() as conn:
            page_id = self._live_page(conn, commit.wiki_id, commit.slug).page_id
            try:
                conn.execute(self.sql["update", "pages"], {"b_page_id": page_id, "slug": new_slug})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {"pages_live_slug": self._slug_taken(commit, new_slug)})
            revision_id = self._add_revision(conn, page_id, commit, git_commit, ChangeType.RENAME)
        logger.info("Renamed page '{}' to '{}' (ID {})".format(commit.slug, new_slug, page_id))
        return revision_id

    def remove(self, commit, git_commit):
        """
        Soft-delete a page. Its slug becomes available for new pages.

        :returns: the revision ID
        """
        _check_git_commit(git_commit)
        page_locks = self.db.page_locks
        with self.db.engine.begin() as conn:
            page_id = self._live_page(conn, commit.wiki_id, commit.slug).page_id
            conn.execute(self.sql["update", "pages"], {"b_page_id": page_id, "deleted_at": utc_now()})
            conn.execute(page_locks.delete().where(page_locks.c.page_id == page_id))
            revision_id = self._add_revision(conn, page_id, commit, git_commit, ChangeType.DELETE)
        logger.info("Deleted page '{}' (ID {})".format(commit.slug, page_id))
        return revision_id

    def restore(self, commit, git_commit, page_id=None):
        """
        Restore a deleted page under the slug of the commit.

        :param page_id:
            the deleted page to restore. It may have been deleted under a
            different slug, in which case it is renamed. Defaults to the most
            recently created deleted page with the slug.
        :returns: the revision ID
        :raises PageExists: when a live page holds the slug
        :raises PageNotFound: when there is no matching deleted page
        """
        _check_slug(commit.slug)
        _check_git_commit(git_commit)
        pages = self.db.pages
        query = sa.select(pages.c.page_id, pages.c.slug) \
                  .where(pages.c.wiki_id == commit.wiki_id) \
                  .where(pages.c.deleted_at.is_not(None))
        if page_id is None:
            query = query.where(pages.c.slug == commit.slug) \
                         .order_by(pages.c.created_at.desc(), pages.c.page_id.desc()).limit(1)
        else:
            query = query.where(pages.c.page_id == page_id)

        with self.db.engine.begin() as conn:
            live = conn.execute(self.sql["select", "live_page"],
                                {"b_wiki_id": commit.wiki_id, "b_slug": commit.slug}).first()
            if live is not None:
                raise self._slug_taken(commit)
            deleted = conn.execute(query).first()
            if deleted is None:
                if page_id is None:
                    raise PageNotFound(f"no deleted page '{commit.slug}' in wiki ID {commit.wiki_id}")
                raise PageNotFound(f"no deleted page ID {page_id} in wiki ID {commit.wiki_id}")
            try:
                conn.execute(self.sql["update", "pages"],
                             {"b_page_id": deleted.page_id, "deleted_at": None, "slug": commit.slug})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {"pages_live_slug": self._slug_taken(commit)})
            revision_id = self._add_revision(conn, deleted.page_id, commit, git_commit, ChangeType.RESTORE)
        if deleted.slug != commit.slug:
            logger.info("Restored page '{}' (ID {}) as '{}'".format(deleted.slug, deleted.page_id, commit.slug))
        else:
            logger.info("Restored page '{}' (ID {})".format(commit.slug, deleted.page_id))
        return revision_id

    def undo(self, commit, git_commit):
        """
        Record a commit which reverts an earlier change of the page contents.

        :returns: the revision ID
        """
        _check_git_commit(git_commit)
        with self.db.engine.begin() as conn:
            page_id = self._live_page(conn, commit.wiki_id, commit.slug).page_id
            revision_id = self._add_revision(conn, page_id, commit, git_commit, ChangeType.UNDO)
        logger.info("Undid a change of page '{}' (ID {})".format(commit.slug, page_id))
        return revision_id

    def set_tags(self, commit, git_commit, tags):
        """
        Replace the tags of a page. The added and removed tags are recorded in
        the ``tag_history`` table.

        :param tags: iterable of the new tags
        :returns: the revision ID
        """
        _check_git_commit(git_commit)
        tags = normalize_tags(tags)
        with self.db.engine.begin() as conn:
            page = self._live_page(conn, commit.wiki_id, commit.slug)
            added, removed = tag_diff(page.tags, tags)
            conn.execute(self.sql["update", "pages"], {"b_page_id": page.page_id, "tags": tags})
            revision_id = self._add_revision(conn, page.page_id, commit, git_commit, ChangeType.TAGS)
            conn.execute(self.sql["insert", "tag_history"], {
                "revision_id": revision_id,
                "added_tags": added,
                "removed_tags": removed,
            })
        logger.info("Changed tags of page '{}' (ID {}): added {}, removed {}".format(
            commit.slug, page.page_id, added, removed))
        return revision_id

    # revisions

    def revisions(self, page_id):
        revisions = self.db.revisions
        query = revisions.select().where(revisions.c.page_id == page_id).order_by(revisions.c.revision_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def get_revision(self, revision_id):
        revisions = self.db.revisions
        with self.db.engine.connect() as conn:
            return conn.execute(revisions.select().where(revisions.c.revision_id == revision_id)).first()

    def last_commit(self, page_id, *, exclude_deletions=False):
        """
        :param exclude_deletions:
            skip revisions which deleted the page, i.e. get the commit with the
            last contents of a deleted page
        :returns: the git commit hash of the latest revision, or ``None``
        """
        revisions = self.db.revisions
        query = sa.select(revisions.c.git_commit) \
                  .where(revisions.c.page_id == page_id) \
                  .order_by(revisions.c.revision_id.desc()) \
                  .limit(1)
        if exclude_deletions is True:
            query = query.where(revisions.c.change_type != ChangeType.DELETE.value)
        with self.db.engine.connect() as conn:
            return conn.execute(query).scalar()

    def edit_revision(self, revision_id, message):
        """
        Change the message of a revision. Nothing else about a revision can be
        changed.
        """
        revisions = self.db.revisions
        query = revisions.update() \
                         .where(revisions.c.revision_id == revision_id) \
                         .values(message=message) \
                         .returning(revisions.c.revision_id)
        with self.db.engine.begin() as conn:
            if conn.execute(query).first() is None:
                raise RevisionNotFound(f"revision ID {revision_id}")
        logger.info("Edited the message of revision ID {}".format(revision_id))

    def tag_history(self, page_id):
        """
        :returns: rows with the revision fields plus ``added_tags`` and
            ``removed_tags``, oldest first
        """
        revisions = self.db.revisions
        th = self.db.tag_history
        query = sa.select(revisions, th.c.added_tags, th.c.removed_tags) \
                  .select_from(revisions.join(th, revisions.c.revision_id == th.c.revision_id)) \
                  .where(revisions.c.page_id == page_id) \
                  .order_by(revisions.c.revision_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    # locks

    def lock(self, page_id, user_id):
        """
        Lock a page for editing for the lock duration configured in its wiki.
        A user holding the lock may refresh it, expired locks of other users
        are taken over.

        :returns: the end of the lock
        :raises PageNotFound: when the page does not exist or is deleted
        :raises PageLocked: when another user holds a lock
        """
        pages = self.db.pages
        settings = self.db.wiki_settings
        page_locks = self.db.page_locks
        now = utc_now()

        with self.db.engine.begin() as conn:
            duration = conn.execute(
                sa.select(settings.c.page_lock_duration)
                  .select_from(pages.join(settings, pages.c.wiki_id == settings.c.wiki_id))
                  .where(pages.c.page_id == page_id)
                  .where(pages.c.deleted_at.is_(None))
            ).scalar()
            if duration is None:
                raise PageNotFound(f"page ID {page_id}")

            ins = sa.dialects.postgresql.insert(page_locks).values(
                page_id=page_id,
                user_id=user_id,
                locked_until=now + datetime.timedelta(seconds=duration),
            )
            # the row is only overwritten if the lock expired or belongs to the same user
            upsert = ins.on_conflict_do_update(
                index_elements=[page_locks.c.page_id],
                set_={
                    "user_id": ins.excluded.user_id,
                    "locked_until": ins.excluded.locked_until,
                },
                where=sa.or_(page_locks.c.locked_until <= now,
                             page_locks.c.user_id == ins.excluded.user_id),
            ).returning(page_locks.c.locked_until)
            try:
                locked_until = conn.execute(upsert).scalar()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {"page_locks_user_id_fkey": UserNotFound(f"user ID {user_id}")})
            if locked_until is None:
                holder = conn.execute(page_locks.select().where(page_locks.c.page_id == page_id)).first()
                raise PageLocked(page_id, holder.user_id, holder.locked_until)

        logger.debug("User ID {} locked page ID {} until {}".format(user_id, page_id, locked_until.isoformat()))
        return locked_until

    def unlock(self, page_id, user_id):
        """
        Release a lock held by the user.

        :returns: ``True`` if a lock was released
        """
        page_locks = self.db.page_locks
        query = page_locks.delete() \
                          .where(page_locks.c.page_id == page_id) \
                          .where(page_locks.c.user_id == user_id)
        with self.db.engine.begin() as conn:
            released = conn.execute(query).rowcount > 0
        if released:
            logger.debug("User ID {} unlocked page ID {}".format(user_id, page_id))
        return released

    def get_lock(self, page_id):
        """
        :returns: the ``page_locks`` row if the lock has not expired yet,
            otherwise ``None``
        """
        page_locks = self.db.page_locks
        query = page_locks.select() \
                          .where(page_locks.c.page_id == page_id) \
                          .where(page_locks.c.locked_until > utc_now())
        with self.db.engine.connect() as conn:
            return conn.execute(query).first()

    # parents

    def add_parent(self, page_id, parent_page_id, user_id):
        """
        :returns: ``True`` if the parent was added, ``False`` if it was
            already set
        :raises ValueError: when a page would be its own parent
        """
        if page_id == parent_page_id:
            raise ValueError(f"page ID {page_id} cannot be its own parent")
        entry = {
            "page_id": page_id,
            "parent_page_id": parent_page_id,
            "parented_by": user_id,
            "parented_at": utc_now(),
        }
        with self.db.engine.begin() as conn:
            try:
                added = conn.execute(self.sql["insert", "parents"], entry).first() is not None
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "parents_page_id_fkey": PageNotFound(f"page ID {page_id}"),
                    "parents_parent_page_id_fkey": PageNotFound(f"page ID {parent_page_id}"),
                    "parents_parented_by_fkey": UserNotFound(f"user ID {user_id}"),
                })
        if added:
            logger.info("Page ID {} is now a child of page ID {}".format(page_id, parent_page_id))
        return added

    def remove_parent(self, page_id, parent_page_id):
        parents = self.db.parents
        query = parents.delete() \
                       .where(parents.c.page_id == page_id) \
                       .where(parents.c.parent_page_id == parent_page_id)
        with self.db.engine.begin() as conn:
            removed = conn.execute(query).rowcount > 0
        if removed:
            logger.info("Page ID {} is no longer a child of page ID {}".format(page_id, parent_page_id))
        return removed

    def parents(self, page_id):
        """
        :returns: IDs of the parents of the page
        """
        parents = self.db.parents
        query = sa.select(parents.c.parent_page_id) \
                  .where(parents.c.page_id == page_id) \
                  .order_by(parents.c.parent_page_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).scalars().all()

    def children(self, page_id):
        """
        :returns: IDs of the pages which have the page as a parent
        """
        parents = self.db.parents
        query = sa.select(parents.c.page_id) \
                  .where(parents.c.parent_page_id == page_id) \
                  .order_by(parents.c.page_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).scalars().all()

    # authors

    def add_author(self, page_id, user_id, author_type, *, written_at=None):
        """
        :param author_type: a :py:class:`wstore.db.constants.AuthorType` or its value
        :param datetime.date written_at: defaults to the current date
        :returns: ``True`` if the author was added
        :raises ValueError: for an unknown author type
        """
        author_type = AuthorType(author_type)
        entry = {
            "page_id": page_id,
            "user_id": user_id,
            "author_type": author_type.value,
        }
        if written_at is not None:
            entry["written_at"] = written_at
        with self.db.engine.begin() as conn:
            try:
                added = conn.execute(self.sql["insert", "authors"], entry).first() is not None
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "authors_page_id_fkey": PageNotFound(f"page ID {page_id}"),
                    "authors_user_id_fkey": UserNotFound(f"user ID {user_id}"),
                })
        if added:
            logger.info("Added user ID {} as {} of page ID {}".format(user_id, author_type.value, page_id))
        return added

    def remove_author(self, page_id, user_id, author_type):
        author_type = AuthorType(author_type)
        authors = self.db.authors
        query = authors.delete() \
                       .where(authors.c.page_id == page_id) \
                       .where(authors.c.user_id == user_id) \
                       .where(authors.c.author_type == author_type.value)
        with self.db.engine.begin() as conn:
            return conn.execute(query).rowcount > 0

    def authors(self, page_id):
        authors = self.db.authors
        query = authors.select() \
                       .where(authors.c.page_id == page_id) \
                       .order_by(authors.c.written_at, authors.c.user_id, authors.c.author_type)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()
