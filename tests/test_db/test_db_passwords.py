import logging

import pytest

from wstore.db import PasswordStore
from wstore.db.exceptions import NewPasswordInvalid, AuthenticationFailed, UserNotFound
from wstore.db.passwords import MAX_PASSWORD_LEN


@pytest.fixture
def passwords(db):
    return PasswordStore(db, blacklist={"password123"}, logn=4, param_r=8, param_p=1)


def test_set_and_check(passwords, user_id):
    passwords.set(user_id, "correct horse battery staple")
    passwords.check(user_id, "correct horse battery staple")


def test_stored_record(db, passwords, user_id):
    passwords.set(user_id, "correct horse battery staple")
    with db.engine.connect() as conn:
        record = conn.execute(db.passwords.select().where(db.passwords.c.user_id == user_id)).one()
    assert len(record.hash) == 32
    assert len(record.salt) == 16
    assert (record.logn, record.param_r, record.param_p) == (4, 8, 1)


def test_wrong_password(passwords, user_id, caplog):
    passwords.set(user_id, "correct horse battery staple")
    with caplog.at_level(logging.WARNING, logger="wstore.db.passwords"):
        with pytest.raises(AuthenticationFailed):
            passwords.check(user_id, "incorrect horse battery staple")
    assert "wrong password" in caplog.text
    assert "incorrect horse" not in caplog.text


def test_no_password(passwords, user_id):
    with pytest.raises(AuthenticationFailed):
        passwords.check(user_id, "correct horse battery staple")


def test_too_long(passwords, user_id):
    with pytest.raises(NewPasswordInvalid):
        passwords.set(user_id, "a" * (MAX_PASSWORD_LEN + 1))
    passwords.set(user_id, "correct horse battery staple")
    with pytest.raises(AuthenticationFailed):
        passwords.check(user_id, "a" * (MAX_PASSWORD_LEN + 1))


@pytest.mark.parametrize("password", ["short", "1234567", "password123"])
def test_invalid_new_password(passwords, user_id, password):
    with pytest.raises(NewPasswordInvalid):
        passwords.set(user_id, password)


def test_replace(passwords, user_id):
    passwords.set(user_id, "first password")
    passwords.set(user_id, "second password")
    passwords.check(user_id, "second password")
    with pytest.raises(AuthenticationFailed):
        passwords.check(user_id, "first password")


def test_remove(passwords, user_id):
    passwords.set(user_id, "correct horse battery staple")
    assert passwords.remove(user_id) is True
    assert passwords.remove(user_id) is False
    with pytest.raises(AuthenticationFailed):
        passwords.check(user_id, "correct horse battery staple")


def test_missing_user(passwords):
    with pytest.raises(UserNotFound):
        passwords.set(987654, "correct horse battery staple")
