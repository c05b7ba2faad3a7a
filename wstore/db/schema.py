#! /usr/bin/env python3

"""
Differences from the schema this project was started from:

- Slug and git commit CHECK constraints use anchored regular expressions.
  Unanchored patterns accept any string containing at least one valid
  character.
- Uniqueness of page slugs is enforced with a partial unique index on
  ``(wiki_id, slug)`` over pages where ``deleted_at IS NULL``. A plain
  ``UNIQUE (deleted_at, slug)`` constraint does not reject duplicate live
  pages, because NULLs are distinct in PostgreSQL unique constraints.
- The primary key of ``role_membership`` uses the same (lower-case) column
  names as the column definitions.
- Pages cannot be their own parents.
- Login attempts are protected by triggers in addition to the revoked
  privileges, so that even the owner of the table cannot modify or delete
  rows without disabling the triggers first.
- Sentinel accounts are flagged as special.

All tables use the ``BIGSERIAL`` primary keys of the original schema.
"""

from sqlalchemy import \
        DDL, Table, Column, ForeignKey, Index, PrimaryKeyConstraint, UniqueConstraint, CheckConstraint, \
        event, func, text
from sqlalchemy.types import \
        Boolean, SmallInteger, Integer, BigInteger, \
        Unicode, UnicodeText, CHAR, Date, LargeBinary, ARRAY

from wstore.utils import SLUG_PATTERN

from .constants import GIT_COMMIT_PATTERN, ChangeType, AuthorType
from .sql_types import UTCDateTime, PermissionSet


def _in_values(column, enum):
    values = ", ".join("'{}'".format(member.value) for member in enum)
    return "{} IN ({})".format(column, values)


def create_users_tables(metadata):
    users = Table("users", metadata,
        Column("user_id", BigInteger, primary_key=True, nullable=False),
        Column("name", UnicodeText, nullable=False),
        Column("email", UnicodeText, nullable=False),
        Column("is_verified", Boolean, nullable=False, server_default=text("false")),
        Column("is_special", Boolean, nullable=False, server_default=text("false")),
        Column("is_bot", Boolean, nullable=False, server_default=text("false")),
        Column("author_page", UnicodeText, nullable=False, server_default=""),
        Column("website", UnicodeText, nullable=False, server_default=""),
        Column("about", UnicodeText, nullable=False, server_default=""),
        Column("gender", UnicodeText, nullable=False, server_default=""),
        Column("location", UnicodeText, nullable=False, server_default=""),
        Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
        # NULL means active
        Column("deleted_at", UTCDateTime),
        UniqueConstraint("name", name="users_name_key"),
        UniqueConstraint("email", name="users_email_key"),
        CheckConstraint("email = lower(email)", name="check_email"),
        CheckConstraint("gender = lower(gender)", name="check_gender"),
    )


def create_wikis_tables(metadata):
    wikis = Table("wikis", metadata,
        Column("wiki_id", BigInteger, primary_key=True, nullable=False),
        Column("name", UnicodeText, nullable=False),
        Column("slug", UnicodeText, nullable=False),
        Column("domain", UnicodeText, nullable=False),
        Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
        UniqueConstraint("slug", name="wikis_slug_key"),
        UniqueConstraint("domain", name="wikis_domain_key"),
        CheckConstraint("slug ~ '{}'".format(SLUG_PATTERN), name="check_slug"),
        CheckConstraint("domain = lower(domain)", name="check_domain"),
    )

    wiki_settings = Table("wiki_settings", metadata,
        Column("wiki_id", BigInteger, ForeignKey("wikis.wiki_id"), primary_key=True, nullable=False),
        # in seconds
        Column("page_lock_duration", SmallInteger, nullable=False),
        CheckConstraint("page_lock_duration > 0", name="check_page_lock_duration"),
    )

    wiki_membership = Table("wiki_membership", metadata,
        Column("wiki_id", BigInteger, ForeignKey("wikis.wiki_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("applied_at", UTCDateTime, nullable=False),
        Column("joined_at", UTCDateTime, nullable=False),
        # NULL means not banned
        Column("banned_at", UTCDateTime),
        # NULL means indefinite ban (if banned_at is set)
        Column("banned_until", UTCDateTime),
        PrimaryKeyConstraint("wiki_id", "user_id"),
    )
    Index("wiki_membership_user", wiki_membership.c.user_id)

    roles = Table("roles", metadata,
        Column("role_id", BigInteger, primary_key=True, nullable=False),
        Column("wiki_id", BigInteger, ForeignKey("wikis.wiki_id"), nullable=False),
        Column("name", UnicodeText, nullable=False),
        Column("permset", PermissionSet, nullable=False),
        UniqueConstraint("wiki_id", "name", name="roles_wiki_id_name_key"),
    )

    role_membership = Table("role_membership", metadata,
        Column("wiki_id", BigInteger, ForeignKey("wikis.wiki_id"), nullable=False),
        Column("role_id", BigInteger, ForeignKey("roles.role_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("applied_at", UTCDateTime, nullable=False),
        PrimaryKeyConstraint("wiki_id", "role_id", "user_id"),
    )
    Index("role_membership_user", role_membership.c.wiki_id, role_membership.c.user_id)


def create_pages_tables(metadata):
    pages = Table("pages", metadata,
        Column("page_id", BigInteger, primary_key=True, nullable=False),
        Column("wiki_id", BigInteger, ForeignKey("wikis.wiki_id"), nullable=False),
        Column("slug", UnicodeText, nullable=False),
        Column("title", UnicodeText, nullable=False),
        Column("alt_title", UnicodeText),
        Column("tags", ARRAY(UnicodeText), nullable=False, server_default="{}"),
        Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
        # NULL means the page exists
        Column("deleted_at", UTCDateTime),
        CheckConstraint("slug ~ '{}'".format(SLUG_PATTERN), name="check_slug"),
    )
    Index("pages_live_slug", pages.c.wiki_id, pages.c.slug, unique=True,
          postgresql_where=pages.c.deleted_at.is_(None))
    Index("pages_wiki_slug_created", pages.c.wiki_id, pages.c.slug, pages.c.created_at)

    # advisory lock for concurrent editing, expired rows are simply overwritten
    page_locks = Table("page_locks", metadata,
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), primary_key=True, nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("locked_until", UTCDateTime, nullable=False),
    )

    parents = Table("parents", metadata,
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("parent_page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("parented_by", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("parented_at", UTCDateTime, nullable=False),
        PrimaryKeyConstraint("page_id", "parent_page_id"),
        CheckConstraint("page_id <> parent_page_id", name="check_parent"),
    )
    Index("parents_parent", parents.c.parent_page_id)

    ratings = Table("ratings", metadata,
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("rating", SmallInteger, nullable=False),
        PrimaryKeyConstraint("page_id", "user_id"),
    )

    ratings_history = Table("ratings_history", metadata,
        Column("rating_id", BigInteger, primary_key=True, nullable=False),
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
        # NULL means the rating was retracted
        Column("rating", SmallInteger),
    )
    Index("ratings_history_page_user", ratings_history.c.page_id, ratings_history.c.user_id)

    authors = Table("authors", metadata,
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("author_type", UnicodeText, nullable=False),
        Column("written_at", Date, nullable=False, server_default=text("CURRENT_DATE")),
        PrimaryKeyConstraint("page_id", "user_id", "author_type"),
        CheckConstraint(_in_values("author_type", AuthorType), name="check_author_type"),
    )
    Index("authors_user", authors.c.user_id)


def create_revisions_tables(metadata):
    revisions = Table("revisions", metadata,
        Column("revision_id", BigInteger, primary_key=True, nullable=False),
        Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("message", UnicodeText, nullable=False),
        # commit in the external repository holding the page contents
        Column("git_commit", CHAR(40), nullable=False),
        Column("change_type", Unicode(8), nullable=False),
        CheckConstraint("git_commit ~ '{}'".format(GIT_COMMIT_PATTERN), name="check_git_commit"),
        CheckConstraint(_in_values("change_type", ChangeType), name="check_change_type"),
    )
    Index("revisions_page_id", revisions.c.page_id, revisions.c.revision_id)
    Index("revisions_user_created", revisions.c.user_id, revisions.c.created_at)

    # extension of revisions with change_type = 'tags'
    tag_history = Table("tag_history", metadata,
        Column("revision_id", BigInteger, ForeignKey("revisions.revision_id"), primary_key=True, nullable=False),
        Column("added_tags", ARRAY(UnicodeText), nullable=False),
        Column("removed_tags", ARRAY(UnicodeText), nullable=False),
        CheckConstraint("NOT (added_tags && removed_tags)", name="check_tags"),
    )


def create_files_tables(metadata):
    files = Table("files", metadata,
        Column("file_id", BigInteger, primary_key=True, nullable=False),
        Column("file_name", UnicodeText, nullable=False),
        Column("file_uri", UnicodeText, nullable=False),
        Column("description", UnicodeText, nullable=False),
        Column("page_id", BigInteger, ForeignKey("pages.page_id"), nullable=False),
        UniqueConstraint("file_name", name="files_file_name_key"),
        UniqueConstraint("file_uri", name="files_file_uri_key"),
    )
    Index("files_page", files.c.page_id)


# statements protecting the login_attempts table, executed in this order
LOGIN_ATTEMPTS_GUARD = [
    """
    CREATE OR REPLACE FUNCTION reject_login_attempts_change() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'login attempts cannot be modified or deleted'
            USING ERRCODE = 'insufficient_privilege';
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE TRIGGER login_attempts_immutable
        BEFORE UPDATE OR DELETE ON login_attempts
        FOR EACH ROW EXECUTE FUNCTION reject_login_attempts_change()
    """,
    """
    CREATE TRIGGER login_attempts_no_truncate
        BEFORE TRUNCATE ON login_attempts
        FOR EACH STATEMENT EXECUTE FUNCTION reject_login_attempts_change()
    """,
    "REVOKE UPDATE, DELETE, TRUNCATE ON TABLE login_attempts FROM PUBLIC",
]

LOGIN_ATTEMPTS_GUARD_DROP = "DROP FUNCTION IF EXISTS reject_login_attempts_change()"


def create_sessions_tables(metadata):
    # scrypt parameters, see wstore.db.passwords
    passwords = Table("passwords", metadata,
        Column("user_id", BigInteger, ForeignKey("users.user_id"), primary_key=True, nullable=False),
        Column("hash", LargeBinary, nullable=False),
        Column("salt", LargeBinary, nullable=False),
        Column("logn", SmallInteger, nullable=False),
        Column("param_r", Integer, nullable=False),
        Column("param_p", Integer, nullable=False),
        CheckConstraint("length(hash) * 8 = 256", name="check_hash"),
        CheckConstraint("length(salt) * 8 = 128", name="check_salt"),
        CheckConstraint("abs(logn) < 128", name="check_logn"),
        CheckConstraint("param_r > 0", name="check_param_r"),
        CheckConstraint("param_p > 0", name="check_param_p"),
    )

    # append-only audit log
    login_attempts = Table("login_attempts", metadata,
        Column("login_attempt_id", BigInteger, primary_key=True, nullable=False),
        # NULL when the submitted name did not match any user
        Column("user_id", BigInteger, ForeignKey("users.user_id")),
        Column("username_or_email", UnicodeText),
        Column("remote_address", UnicodeText),
        Column("success", Boolean, nullable=False),
        Column("attempted_at", UTCDateTime, nullable=False, server_default=func.now()),
    )
    Index("login_attempts_user_time", login_attempts.c.user_id, login_attempts.c.attempted_at)
    for statement in LOGIN_ATTEMPTS_GUARD:
        event.listen(login_attempts, "after_create", DDL(statement))
    event.listen(login_attempts, "after_drop", DDL(LOGIN_ATTEMPTS_GUARD_DROP))

    sessions = Table("sessions", metadata,
        Column("session_id", BigInteger, primary_key=True, nullable=False),
        Column("user_id", BigInteger, ForeignKey("users.user_id"), nullable=False),
        Column("login_attempt_id", BigInteger, ForeignKey("login_attempts.login_attempt_id"), nullable=False),
    )
    Index("sessions_user", sessions.c.user_id)


def create_tables(metadata):
    create_users_tables(metadata)
    create_wikis_tables(metadata)
    create_pages_tables(metadata)
    create_revisions_tables(metadata)
    create_files_tables(metadata)
    create_sessions_tables(metadata)
