#!/usr/bin/env python3

"""
Password hashing with scrypt and storage of the hashes.

Only the hash, the salt and the cost parameters are stored, so the cost can be
raised for new passwords without invalidating the old ones.
"""

import logging

import passlib.crypto.scrypt
import passlib.hash
import passlib.utils
import sqlalchemy as sa

from .StoreBase import StoreBase
from .exceptions import NewPasswordInvalid, AuthenticationFailed, UserNotFound

logger = logging.getLogger(__name__)

__all__ = ["new_password", "check_password", "build_blacklist", "PasswordStore"]

# in bytes, longer passwords are rejected before hashing
MAX_PASSWORD_LEN = 8192
# in characters
MIN_PASSWORD_LEN = 8

HASH_LENGTH = 32
SALT_LENGTH = 16

DEFAULT_LOGN = 14
DEFAULT_PARAM_R = 8
DEFAULT_PARAM_P = 1


def _check_logn(logn):
    # passlib accepts up to n = 2**31
    if not 0 < logn < 32:
        raise ValueError(f"scrypt logn out of range: {logn}")


def _scrypt_handler(logn, param_r, param_p):
    _check_logn(logn)
    return passlib.hash.scrypt.using(rounds=logn, block_size=param_r, parallelism=param_p,
                                     salt_size=SALT_LENGTH)


def new_password(password, *, logn=DEFAULT_LOGN, param_r=DEFAULT_PARAM_R, param_p=DEFAULT_PARAM_P):
    """
    Hash a password with a new random salt.

    :returns: a dict with the ``hash``, ``salt``, ``logn``, ``param_r`` and
        ``param_p`` fields of the ``passwords`` table
    """
    handler = _scrypt_handler(logn, param_r, param_p)
    parsed = handler.from_string(handler.hash(password))
    assert len(parsed.checksum) == HASH_LENGTH
    return {
        "hash": parsed.checksum,
        "salt": parsed.salt,
        "logn": parsed.rounds,
        "param_r": parsed.block_size,
        "param_p": parsed.parallelism,
    }


def check_password(record, password):
    """
    Check a password against a stored record.

    :param record: a mapping with the fields returned by :py:func:`new_password`
    :returns: ``True`` if the password matches
    """
    logn = record["logn"]
    _check_logn(logn)
    digest = passlib.crypto.scrypt.scrypt(password.encode("utf-8"), bytes(record["salt"]),
                                          2 ** logn, record["param_r"], record["param_p"],
                                          keylen=HASH_LENGTH)
    return passlib.utils.consteq(digest, bytes(record["hash"]))


def build_blacklist(path):
    """
    Read a list of common passwords, one per line.

    :returns: a :py:class:`frozenset` of the passwords
    """
    with open(path, "r", encoding="utf-8") as f:
        return frozenset(line.rstrip("\r\n") for line in f if line.strip())


class PasswordStore(StoreBase):
    """
    :param db: an instance of :py:class:`wstore.db.database.Database`
    :param blacklist: a collection of passwords which cannot be used, e.g.
        created by :py:func:`build_blacklist`
    :param dict cost: scrypt parameters for new passwords (``logn``,
        ``param_r``, ``param_p``)
    """

    def __init__(self, db, blacklist=None, **cost):
        super().__init__(db)
        self.blacklist = frozenset(blacklist or ())
        self.cost = cost

        ins = sa.dialects.postgresql.insert(db.passwords)
        self.sql = {
            ("insert", "passwords"):
                ins.on_conflict_do_update(
                    index_elements=[db.passwords.c.user_id],
                    set_={
                        "hash":    ins.excluded.hash,
                        "salt":    ins.excluded.salt,
                        "logn":    ins.excluded.logn,
                        "param_r": ins.excluded.param_r,
                        "param_p": ins.excluded.param_p,
                    }),
            ("select", "passwords"):
                db.passwords.select()
                    .where(db.passwords.c.user_id == sa.bindparam("b_user_id")),
        }

    def validate(self, password):
        """
        :raises NewPasswordInvalid: when the password cannot be used
        """
        # the hashing cost grows with the length
        if len(password.encode("utf-8")) > MAX_PASSWORD_LEN:
            raise NewPasswordInvalid("password too long")
        if len(password) < MIN_PASSWORD_LEN:
            raise NewPasswordInvalid(f"password must be at least {MIN_PASSWORD_LEN} characters")
        if password in self.blacklist:
            raise NewPasswordInvalid("password is too common")

    def set(self, user_id, password):
        """
        Set or replace the password of a user.
        """
        self.validate(password)
        entry = new_password(password, **self.cost)
        entry["user_id"] = user_id
        with self.db.engine.begin() as conn:
            try:
                conn.execute(self.sql["insert", "passwords"], entry)
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {"passwords_user_id_fkey": UserNotFound(f"user ID {user_id}")})
        logger.info("Set a new password for user ID {}".format(user_id))

    def check(self, user_id, password):
        """
        :raises AuthenticationFailed: when the password does not match, the
            reason is only logged
        """
        if len(password.encode("utf-8")) > MAX_PASSWORD_LEN:
            logger.warning("Password check for user ID {} failed: password too long".format(user_id))
            raise AuthenticationFailed()
        with self.db.engine.connect() as conn:
            record = conn.execute(self.sql["select", "passwords"], {"b_user_id": user_id}).first()
        if record is None:
            logger.warning("Password check for user ID {} failed: no password set".format(user_id))
            raise AuthenticationFailed()
        if not check_password(record._mapping, password):
            logger.warning("Password check for user ID {} failed: wrong password".format(user_id))
            raise AuthenticationFailed()
        logger.debug("Password check for user ID {} succeeded".format(user_id))

    def remove(self, user_id):
        """
        :returns: ``True`` if the user had a password
        """
        passwords = self.db.passwords
        with self.db.engine.begin() as conn:
            removed = conn.execute(passwords.delete().where(passwords.c.user_id == user_id)).rowcount > 0
        if removed:
            logger.info("Removed the password of user ID {}".format(user_id))
        return removed
