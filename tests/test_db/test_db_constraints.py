"""
Constraints enforced by the database itself, tested with plain inserts which
bypass the checks in the store classes.
"""

import pytest
import sqlalchemy as sa

from wstore.db import Sessions
from wstore.permissions import Permission
from tests.fixtures.database import GIT_COMMIT


def _insert(db, table, **values):
    with db.engine.begin() as conn:
        return conn.execute(table.insert().values(**values)).inserted_primary_key[0]


def _add_page(db, wiki_id, slug):
    return _insert(db, db.pages, wiki_id=wiki_id, slug=slug, title=slug)


def _add_revision(db, page_id, user_id, git_commit=GIT_COMMIT, change_type="create"):
    return _insert(db, db.revisions, page_id=page_id, user_id=user_id, message="",
                   git_commit=git_commit, change_type=change_type)


def test_uppercase_email(db):
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _insert(db, db.users, name="upper", email="Upper@example.com")
    assert "check_email" in str(excinfo.value)


def test_uppercase_gender(db):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.users, name="upper", email="upper@example.com", gender="Female")


def test_uppercase_domain(db):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.wikis, name="Upper", slug="upper", domain="Upper.example.com")


@pytest.mark.parametrize("slug", ["Upper", "with space", "a/b", "bad!slug", ""])
def test_invalid_page_slug(db, wiki_id, slug):
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _add_page(db, wiki_id, slug)
    assert "check_slug" in str(excinfo.value)


def test_live_slug_unique(db, wiki_id):
    page_id = _add_page(db, wiki_id, "duplicate")
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _add_page(db, wiki_id, "duplicate")
    assert "pages_live_slug" in str(excinfo.value)

    # the slug can be reused after a soft deletion
    with db.engine.begin() as conn:
        conn.execute(db.pages.update().where(db.pages.c.page_id == page_id).values(deleted_at=sa.func.now()))
    second = _add_page(db, wiki_id, "duplicate")
    assert second != page_id

    # deleted pages do not block each other either
    with db.engine.begin() as conn:
        conn.execute(db.pages.update().where(db.pages.c.page_id == second).values(deleted_at=sa.func.now()))
    _add_page(db, wiki_id, "duplicate")


def test_same_slug_in_different_wikis(db, wiki_id):
    other = _insert(db, db.wikis, name="Other", slug="other", domain="other.example.com")
    _add_page(db, wiki_id, "shared")
    _add_page(db, other, "shared")


def test_overlapping_tags(db, page_id, user_id):
    revision_id = _add_revision(db, page_id, user_id, change_type="tags")
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _insert(db, db.tag_history, revision_id=revision_id,
                added_tags=["scp", "keter"], removed_tags=["keter"])
    assert "check_tags" in str(excinfo.value)
    _insert(db, db.tag_history, revision_id=revision_id, added_tags=["scp"], removed_tags=["keter"])


@pytest.mark.parametrize("git_commit", [
    GIT_COMMIT.upper(),
    GIT_COMMIT[:39],
    "g" * 40,
    "x" + GIT_COMMIT[:39],
])
def test_invalid_git_commit(db, page_id, user_id, git_commit):
    with pytest.raises(sa.exc.IntegrityError):
        _add_revision(db, page_id, user_id, git_commit=git_commit)


def test_invalid_change_type(db, page_id, user_id):
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _add_revision(db, page_id, user_id, change_type="edit")
    assert "check_change_type" in str(excinfo.value)


def test_invalid_author_type(db, page_id, user_id):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.authors, page_id=page_id, user_id=user_id, author_type="editor")


def test_page_is_not_its_own_parent(db, page_id, user_id):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.parents, page_id=page_id, parent_page_id=page_id,
                parented_by=user_id, parented_at=sa.func.now())


def test_page_lock_duration(db):
    wiki_id = _insert(db, db.wikis, name="Locks", slug="locks", domain="locks.example.com")
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.wiki_settings, wiki_id=wiki_id, page_lock_duration=0)


def test_password_lengths(db, user_id):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.passwords, user_id=user_id, hash=b"\0" * 31, salt=b"\0" * 16,
                logn=4, param_r=8, param_p=1)
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.passwords, user_id=user_id, hash=b"\0" * 32, salt=b"\0" * 15,
                logn=4, param_r=8, param_p=1)


def test_role_name_unique_per_wiki(db, wiki_id):
    other = _insert(db, db.wikis, name="Other", slug="other", domain="other.example.com")
    _insert(db, db.roles, wiki_id=wiki_id, name="moderator", permset=Permission.VIEW)
    with pytest.raises(sa.exc.IntegrityError) as excinfo:
        _insert(db, db.roles, wiki_id=wiki_id, name="moderator", permset=Permission.all())
    assert "roles_wiki_id_name_key" in str(excinfo.value)
    _insert(db, db.roles, wiki_id=other, name="moderator", permset=Permission.all())


def test_foreign_keys(db):
    with pytest.raises(sa.exc.IntegrityError):
        _insert(db, db.pages, wiki_id=12345, slug="orphan", title="Orphan")


class test_login_attempts_immutable:

    @pytest.fixture
    def attempt_id(self, db, user_id):
        return Sessions(db).record_login_attempt(user_id=user_id, username_or_email="jane",
                                                 remote_address="127.0.0.1", success=True)

    def test_delete(self, db, attempt_id):
        with pytest.raises(sa.exc.DBAPIError) as excinfo:
            with db.engine.begin() as conn:
                conn.execute(db.login_attempts.delete())
        assert "cannot be modified or deleted" in str(excinfo.value)

    def test_update(self, db, attempt_id):
        with pytest.raises(sa.exc.DBAPIError):
            with db.engine.begin() as conn:
                conn.execute(db.login_attempts.update().values(success=False))

    def test_truncate(self, db, attempt_id):
        with pytest.raises(sa.exc.DBAPIError):
            with db.engine.begin() as conn:
                conn.execute(sa.text("TRUNCATE login_attempts CASCADE"))

    def test_public_privileges(self, db):
        with db.engine.connect() as conn:
            for privilege in ["UPDATE", "DELETE", "TRUNCATE"]:
                query = sa.text("SELECT has_table_privilege('public', 'login_attempts', :privilege)")
                assert conn.execute(query, {"privilege": privilege}).scalar() is False

    def test_rows_survive(self, db, attempt_id):
        for statement in [db.login_attempts.delete(), sa.text("TRUNCATE login_attempts CASCADE")]:
            with pytest.raises(sa.exc.DBAPIError):
                with db.engine.begin() as conn:
                    conn.execute(statement)
        assert [row.login_attempt_id for row in Sessions(db).login_attempts()] == [attempt_id]
