import datetime
import logging

import pytest

from wstore.db import Wikis
from wstore.db.exceptions import WikiExists, WikiNotFound, UserNotFound, MembershipExists, MembershipNotFound
from wstore.utils import utc_now


@pytest.fixture
def wikis(db):
    return Wikis(db)


def test_create(wikis, wiki_id):
    wiki = wikis.get_by_id(wiki_id)
    assert wiki.name == "Test Wiki"
    assert wiki.slug == "test"
    assert wiki.domain == "test.example.com"
    assert wikis.get_by_slug("test").wiki_id == wiki_id
    assert wikis.get_settings(wiki_id).page_lock_duration == 60


def test_create_normalizes(wikis):
    wiki_id = wikis.create("SCP Foundation", "SCP Foundation", "SCP-Wiki.Example.COM")
    wiki = wikis.get_by_id(wiki_id)
    assert wiki.slug == "scp-foundation"
    assert wiki.domain == "scp-wiki.example.com"
    assert wikis.get_settings(wiki_id).page_lock_duration == 900


@pytest.mark.parametrize("slug, domain", [
    ("test", "other.example.com"),
    ("other", "TEST.example.com"),
])
def test_create_duplicate(wikis, wiki_id, slug, domain):
    with pytest.raises(WikiExists):
        wikis.create("Other", slug, domain)
    assert len(wikis.list()) == 1


@pytest.mark.parametrize("duration", [0, -5, 2**15])
def test_create_invalid_lock_duration(wikis, duration):
    with pytest.raises(ValueError):
        wikis.create("Other", "other", "other.example.com", page_lock_duration=duration)


def test_rename_and_domain(wikis, wiki_id):
    wikis.rename(wiki_id, "Renamed Wiki")
    wikis.set_domain(wiki_id, "Renamed.Example.com")
    wiki = wikis.get_by_id(wiki_id)
    assert wiki.name == "Renamed Wiki"
    assert wiki.domain == "renamed.example.com"


def test_edit(wikis, wiki_id):
    wikis.edit(wiki_id, name="SCP Sandbox", slug="SCP Sandbox")
    wiki = wikis.get_by_id(wiki_id)
    assert wiki.name == "SCP Sandbox"
    assert wiki.slug == "scp-sandbox"
    assert wikis.get_by_slug("test") is None

    wikis.edit(wiki_id, slug="sandbox")
    wiki = wikis.get_by_id(wiki_id)
    assert (wiki.name, wiki.slug) == ("SCP Sandbox", "sandbox")


def test_edit_slug_taken(wikis, wiki_id):
    wikis.create("Other", "other", "other.example.com")
    with pytest.raises(WikiExists):
        wikis.edit(wiki_id, slug="Other")
    assert wikis.get_by_id(wiki_id).slug == "test"


def test_edit_nothing(wikis, wiki_id, caplog):
    with caplog.at_level(logging.WARNING, logger="wstore.db.wikis"):
        wikis.edit(wiki_id)
    assert "has no changes" in caplog.text
    wiki = wikis.get_by_id(wiki_id)
    assert (wiki.name, wiki.slug) == ("Test Wiki", "test")


def test_set_domain_duplicate(wikis, wiki_id):
    other = wikis.create("Other", "other", "other.example.com")
    with pytest.raises(WikiExists):
        wikis.set_domain(other, "test.example.com")


def test_missing_wiki(wikis):
    with pytest.raises(WikiNotFound):
        wikis.rename(987654, "Nothing")
    with pytest.raises(WikiNotFound):
        wikis.edit(987654, slug="nothing")
    with pytest.raises(WikiNotFound):
        wikis.get_settings(987654)
    with pytest.raises(WikiNotFound):
        wikis.set_page_lock_duration(987654, 60)
    with pytest.raises(WikiNotFound):
        wikis.join(987654, 1)


def test_set_page_lock_duration(wikis, wiki_id):
    wikis.set_page_lock_duration(wiki_id, 300)
    assert wikis.get_settings(wiki_id).page_lock_duration == 300
    with pytest.raises(ValueError):
        wikis.set_page_lock_duration(wiki_id, 0)


class test_membership:

    def test_join(self, wikis, wiki_id, user_id):
        applied_at = utc_now() - datetime.timedelta(days=1)
        wikis.join(wiki_id, user_id, applied_at=applied_at)
        membership = wikis.get_membership(wiki_id, user_id)
        assert membership.applied_at == applied_at
        assert membership.joined_at >= applied_at
        assert membership.banned_at is None
        assert [m.user_id for m in wikis.members(wiki_id)] == [user_id]

    def test_join_twice(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        with pytest.raises(MembershipExists):
            wikis.join(wiki_id, user_id)

    def test_join_missing_user(self, wikis, wiki_id):
        with pytest.raises(UserNotFound):
            wikis.join(wiki_id, 987654)

    def test_ban_indefinitely(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        wikis.ban(wiki_id, user_id)
        membership = wikis.get_membership(wiki_id, user_id)
        assert membership.banned_at is not None
        assert membership.banned_until is None
        assert wikis.is_banned(membership)
        assert wikis.is_banned(membership, at=utc_now() + datetime.timedelta(days=3650))

    def test_ban_temporarily(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        until = utc_now() + datetime.timedelta(days=7)
        wikis.ban(wiki_id, user_id, until=until)
        membership = wikis.get_membership(wiki_id, user_id)
        assert membership.banned_until == until
        assert wikis.is_banned(membership)
        assert not wikis.is_banned(membership, at=until)
        assert not wikis.is_banned(membership, at=membership.banned_at - datetime.timedelta(seconds=1))

    def test_ban_in_the_past(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        with pytest.raises(ValueError):
            wikis.ban(wiki_id, user_id, until=utc_now() - datetime.timedelta(minutes=1))

    def test_unban(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        wikis.ban(wiki_id, user_id)
        wikis.unban(wiki_id, user_id)
        membership = wikis.get_membership(wiki_id, user_id)
        assert membership.banned_at is None
        assert not wikis.is_banned(membership)

    def test_ban_non_member(self, wikis, wiki_id, user_id):
        with pytest.raises(MembershipNotFound):
            wikis.ban(wiki_id, user_id)

    def test_leave(self, wikis, wiki_id, user_id):
        wikis.join(wiki_id, user_id)
        wikis.leave(wiki_id, user_id)
        assert wikis.get_membership(wiki_id, user_id) is None
        with pytest.raises(MembershipNotFound):
            wikis.leave(wiki_id, user_id)
        # rejoining is possible
        wikis.join(wiki_id, user_id)
