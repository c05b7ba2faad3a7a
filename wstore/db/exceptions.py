#! /usr/bin/env python3

"""
Exceptions raised by the store classes in :py:mod:`wstore.db`.

Constraint violations which the stores do not expect are not translated,
the callers get the original :py:class:`sqlalchemy.exc.IntegrityError`.
"""

__all__ = [
    "StoreError",
    "UserExists", "UserNotFound",
    "WikiExists", "WikiNotFound",
    "MembershipExists", "MembershipNotFound",
    "RoleExists", "RoleNotFound",
    "PageExists", "PageNotFound", "PageLocked",
    "RevisionNotFound",
    "FileExists", "FileNotFound",
    "NewPasswordInvalid", "AuthenticationFailed",
    "constraint_name",
]

class StoreError(Exception):
    """ Base exception for all following exceptions
    """
    pass

class UserExists(StoreError):
    pass

class UserNotFound(StoreError):
    pass

class WikiExists(StoreError):
    pass

class WikiNotFound(StoreError):
    pass

class MembershipExists(StoreError):
    pass

class MembershipNotFound(StoreError):
    pass

class RoleExists(StoreError):
    pass

class RoleNotFound(StoreError):
    pass

class PageExists(StoreError):
    """ Raised when a live page with the same slug already exists in the wiki
    """
    pass

class PageNotFound(StoreError):
    pass

class PageLocked(StoreError):
    """ Raised when somebody else holds an unexpired lock on the page
    """
    def __init__(self, page_id, user_id, locked_until):
        self.page_id = page_id
        self.user_id = user_id
        self.locked_until = locked_until

    def __str__(self):
        return "page ID {} is locked by user ID {} until {}".format(
                self.page_id, self.user_id, self.locked_until.isoformat())

class RevisionNotFound(StoreError):
    pass

class FileExists(StoreError):
    pass

class FileNotFound(StoreError):
    pass

class NewPasswordInvalid(StoreError):
    """ Raised when a new password does not satisfy the requirements
    """
    pass

class AuthenticationFailed(StoreError):
    """ Raised for any kind of failed password check, the reason is not
    disclosed to the caller.
    """
    pass


def constraint_name(exc):
    """
    Get the name of the violated constraint from an
    :py:class:`sqlalchemy.exc.IntegrityError` raised by the psycopg driver.

    :returns: the constraint (or unique index) name, or ``None``
    """
    diag = getattr(exc.orig, "diag", None)
    if diag is None:
        return None
    return diag.constraint_name
