"""initial schema

Roles store their permission sets as fixed-width bit strings and passwords
are hashed with PBKDF2.

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2019-10-18 15:05:07.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import BIT


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7e10'
down_revision = None
branch_labels = None
depends_on = None

SLUG_CHECK = "slug ~ '^[a-z0-9:_-]+$'"

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


def _timestamp(name, **kwargs):
    return sa.Column(name, sa.DateTime(timezone=True), **kwargs)


def upgrade():
    # account info
    op.create_table("users",
        sa.Column("user_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("name", sa.UnicodeText, nullable=False),
        sa.Column("email", sa.UnicodeText, nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_special", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_bot", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("author_page", sa.UnicodeText, nullable=False, server_default=""),
        sa.Column("website", sa.UnicodeText, nullable=False, server_default=""),
        sa.Column("about", sa.UnicodeText, nullable=False, server_default=""),
        sa.Column("gender", sa.UnicodeText, nullable=False, server_default=""),
        sa.Column("location", sa.UnicodeText, nullable=False, server_default=""),
        _timestamp("created_at", nullable=False, server_default=sa.func.now()),
        _timestamp("deleted_at"),
        sa.UniqueConstraint("name", name="users_name_key"),
        sa.UniqueConstraint("email", name="users_email_key"),
        sa.CheckConstraint("email = lower(email)", name="check_email"),
        sa.CheckConstraint("gender = lower(gender)", name="check_gender"),
    )

    # wikis and wiki settings
    op.create_table("wikis",
        sa.Column("wiki_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("name", sa.UnicodeText, nullable=False),
        sa.Column("slug", sa.UnicodeText, nullable=False),
        sa.Column("domain", sa.UnicodeText, nullable=False),
        _timestamp("created_at", nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("slug", name="wikis_slug_key"),
        sa.UniqueConstraint("domain", name="wikis_domain_key"),
        sa.CheckConstraint(SLUG_CHECK, name="check_slug"),
        sa.CheckConstraint("domain = lower(domain)", name="check_domain"),
    )
    op.create_table("wiki_settings",
        sa.Column("wiki_id", sa.BigInteger, sa.ForeignKey("wikis.wiki_id"), primary_key=True, nullable=False),
        sa.Column("page_lock_duration", sa.SmallInteger, nullable=False),
        sa.CheckConstraint("page_lock_duration > 0", name="check_page_lock_duration"),
    )
    op.create_table("wiki_membership",
        sa.Column("wiki_id", sa.BigInteger, sa.ForeignKey("wikis.wiki_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        _timestamp("applied_at", nullable=False),
        _timestamp("joined_at", nullable=False),
        _timestamp("banned_at"),
        _timestamp("banned_until"),
        sa.PrimaryKeyConstraint("wiki_id", "user_id"),
    )
    op.create_index("wiki_membership_user", "wiki_membership", ["user_id"])
    op.create_table("roles",
        sa.Column("role_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("wiki_id", sa.BigInteger, sa.ForeignKey("wikis.wiki_id"), nullable=False),
        sa.Column("name", sa.UnicodeText, nullable=False),
        sa.Column("permset", BIT(16), nullable=False),
        sa.UniqueConstraint("wiki_id", "name", name="roles_wiki_id_name_key"),
    )
    op.create_table("role_membership",
        sa.Column("wiki_id", sa.BigInteger, sa.ForeignKey("wikis.wiki_id"), nullable=False),
        sa.Column("role_id", sa.BigInteger, sa.ForeignKey("roles.role_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        _timestamp("applied_at", nullable=False),
        sa.PrimaryKeyConstraint("wiki_id", "role_id", "user_id"),
    )
    op.create_index("role_membership_user", "role_membership", ["wiki_id", "user_id"])

    # pages and revisions
    op.create_table("pages",
        sa.Column("page_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("wiki_id", sa.BigInteger, sa.ForeignKey("wikis.wiki_id"), nullable=False),
        sa.Column("slug", sa.UnicodeText, nullable=False),
        sa.Column("title", sa.UnicodeText, nullable=False),
        sa.Column("alt_title", sa.UnicodeText),
        sa.Column("tags", sa.ARRAY(sa.UnicodeText), nullable=False, server_default="{}"),
        _timestamp("created_at", nullable=False, server_default=sa.func.now()),
        _timestamp("deleted_at"),
        sa.CheckConstraint(SLUG_CHECK, name="check_slug"),
    )
    op.create_index("pages_live_slug", "pages", ["wiki_id", "slug"], unique=True,
                    postgresql_where=sa.text("deleted_at IS NULL"))
    op.create_index("pages_wiki_slug_created", "pages", ["wiki_id", "slug", "created_at"])
    op.create_table("page_locks",
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), primary_key=True, nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        _timestamp("locked_until", nullable=False),
    )
    op.create_table("parents",
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("parent_page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("parented_by", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        _timestamp("parented_at", nullable=False),
        sa.PrimaryKeyConstraint("page_id", "parent_page_id"),
        sa.CheckConstraint("page_id <> parent_page_id", name="check_parent"),
    )
    op.create_index("parents_parent", "parents", ["parent_page_id"])
    op.create_table("ratings",
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("rating", sa.SmallInteger, nullable=False),
        sa.PrimaryKeyConstraint("page_id", "user_id"),
    )
    op.create_table("ratings_history",
        sa.Column("rating_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        _timestamp("created_at", nullable=False, server_default=sa.func.now()),
        sa.Column("rating", sa.SmallInteger),
    )
    op.create_index("ratings_history_page_user", "ratings_history", ["page_id", "user_id"])
    op.create_table("authors",
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("author_type", sa.UnicodeText, nullable=False),
        sa.Column("written_at", sa.Date, nullable=False, server_default=sa.text("CURRENT_DATE")),
        sa.PrimaryKeyConstraint("page_id", "user_id", "author_type"),
        sa.CheckConstraint("author_type IN ('author', 'rewrite', 'translator', 'maintainer')",
                           name="check_author_type"),
    )
    op.create_index("authors_user", "authors", ["user_id"])
    op.create_table("revisions",
        sa.Column("revision_id", sa.BigInteger, primary_key=True, nullable=False),
        _timestamp("created_at", nullable=False, server_default=sa.func.now()),
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("message", sa.UnicodeText, nullable=False),
        sa.Column("git_commit", sa.CHAR(40), nullable=False),
        sa.Column("change_type", sa.Unicode(8), nullable=False),
        sa.CheckConstraint("git_commit ~ '^[a-f0-9]{40}$'", name="check_git_commit"),
        sa.CheckConstraint("change_type IN ('create', 'modify', 'delete', 'restore', 'rename', 'undo', 'tags')",
                           name="check_change_type"),
    )
    op.create_index("revisions_page_id", "revisions", ["page_id", "revision_id"])
    op.create_index("revisions_user_created", "revisions", ["user_id", "created_at"])
    op.create_table("tag_history",
        sa.Column("revision_id", sa.BigInteger, sa.ForeignKey("revisions.revision_id"), primary_key=True, nullable=False),
        sa.Column("added_tags", sa.ARRAY(sa.UnicodeText), nullable=False),
        sa.Column("removed_tags", sa.ARRAY(sa.UnicodeText), nullable=False),
        sa.CheckConstraint("NOT (added_tags && removed_tags)", name="check_tags"),
    )

    # hosted files
    op.create_table("files",
        sa.Column("file_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("file_name", sa.UnicodeText, nullable=False),
        sa.Column("file_uri", sa.UnicodeText, nullable=False),
        sa.Column("description", sa.UnicodeText, nullable=False),
        sa.Column("page_id", sa.BigInteger, sa.ForeignKey("pages.page_id"), nullable=False),
        sa.UniqueConstraint("file_name", name="files_file_name_key"),
        sa.UniqueConstraint("file_uri", name="files_file_uri_key"),
    )
    op.create_index("files_page", "files", ["page_id"])

    # credentials and sessions
    op.create_table("passwords",
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), primary_key=True, nullable=False),
        sa.Column("hash", sa.LargeBinary, nullable=False),
        sa.Column("salt", sa.LargeBinary, nullable=False),
        sa.Column("iterations", sa.Integer, nullable=False),
        sa.Column("key_size", sa.SmallInteger, nullable=False),
        sa.Column("digest", sa.UnicodeText, nullable=False),
        sa.CheckConstraint("length(hash) * 8 = 256", name="check_hash"),
        sa.CheckConstraint("length(salt) * 8 = 128", name="check_salt"),
        sa.CheckConstraint("iterations > 0", name="check_iterations"),
        sa.CheckConstraint("key_size > 0", name="check_key_size"),
        sa.CheckConstraint("digest IN ('sha256', 'sha512')", name="check_digest"),
    )
    op.create_table("login_attempts",
        sa.Column("login_attempt_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id")),
        sa.Column("username_or_email", sa.UnicodeText),
        sa.Column("remote_address", sa.UnicodeText),
        sa.Column("success", sa.Boolean, nullable=False),
        _timestamp("attempted_at", nullable=False, server_default=sa.func.now()),
    )
    op.create_index("login_attempts_user_time", "login_attempts", ["user_id", "attempted_at"])
    for statement in LOGIN_ATTEMPTS_GUARD:
        op.execute(statement)
    op.create_table("sessions",
        sa.Column("session_id", sa.BigInteger, primary_key=True, nullable=False),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("login_attempt_id", sa.BigInteger, sa.ForeignKey("login_attempts.login_attempt_id"), nullable=False),
    )
    op.create_index("sessions_user", "sessions", ["user_id"])


def downgrade():
    for table in ["sessions", "login_attempts", "passwords", "files", "tag_history",
                  "revisions", "authors", "ratings_history", "ratings", "parents",
                  "page_locks", "pages", "role_membership", "roles", "wiki_membership",
                  "wiki_settings", "wikis", "users"]:
        op.drop_table(table)
    op.execute("DROP FUNCTION IF EXISTS reject_login_attempts_change()")
