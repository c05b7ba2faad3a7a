#!/usr/bin/env python3

import enum

# git commit hashes referenced from the revisions table
GIT_COMMIT_PATTERN = "^[a-f0-9]{40}$"


class ChangeType(enum.StrEnum):
    """The effect of a revision on its page."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    RESTORE = "restore"
    RENAME = "rename"
    UNDO = "undo"
    TAGS = "tags"


class AuthorType(enum.StrEnum):
    """The kind of credit a user has on a page."""
    AUTHOR = "author"
    REWRITE = "rewrite"
    TRANSLATOR = "translator"
    MAINTAINER = "maintainer"


# sentinel accounts with fixed IDs
UNKNOWN_USER_ID = 0
ADMINISTRATOR_USER_ID = 1
SYSTEM_USER_ID = 2
ANONYMOUS_USER_ID = 3
NOBODY_USER_ID = 4

DEFAULT_USERS = [
    {
        "user_id": UNKNOWN_USER_ID,
        "name": "unknown",
        "email": "unknown@example.com",
        "is_verified": True,
        "is_special": True,
        "website": "https://example.com/",
        "about": "Standard account for unknown users",
        "location": "unknown",
    },
    {
        "user_id": ADMINISTRATOR_USER_ID,
        "name": "administrator",
        "email": "noreply@example.com",
        "is_verified": True,
        "is_special": True,
        "website": "https://example.com/",
        "about": "Standard account for root-level access",
        "location": "Site-01",
    },
    {
        "user_id": SYSTEM_USER_ID,
        "name": "system",
        "email": "system@example.com",
        "is_verified": True,
        "is_special": True,
        "website": "https://example.com/",
        "about": "Standard account for system actions",
        "location": "everywhere",
    },
    {
        "user_id": ANONYMOUS_USER_ID,
        "name": "anonymous",
        "email": "anonymous@example.com",
        "is_verified": True,
        "is_special": True,
        "website": "https://example.com/",
        "about": "Standard account for anonymous users",
        "location": "unknown",
    },
    {
        "user_id": NOBODY_USER_ID,
        "name": "nobody",
        "email": "nobody@example.com",
        "is_verified": True,
        "is_special": True,
        "website": "https://example.com/",
        "about": "Standard account for unprivileged users",
        "location": "?",
    },
]

SENTINEL_USER_IDS = frozenset(user["user_id"] for user in DEFAULT_USERS)
