#! /usr/bin/env python3

import logging

from wstore.db.database import Database
from wstore.db.users import Users
from wstore.db.wikis import Wikis
from wstore.db.roles import Roles
from wstore.db.exceptions import UserNotFound
from wstore.permissions import Permission

logger = logging.getLogger(__name__)


def create_wiki(db, name, slug, domain, *, page_lock_duration, owner=None):
    """
    Create a wiki. The optional owner joins it with an "owner" role granting
    all permissions.

    :returns: the ID of the new wiki
    """
    wikis = Wikis(db)
    wiki_id = wikis.create(name, slug, domain, page_lock_duration=page_lock_duration)

    if owner is not None:
        user = Users(db).get_by_name(owner)
        if user is None:
            raise UserNotFound(f"user '{owner}'")
        wikis.join(wiki_id, user.user_id)
        roles = Roles(db)
        role_id = roles.create(wiki_id, "owner", Permission.all())
        roles.add_member(role_id, user.user_id)
        logger.info("User '{}' is the owner of wiki '{}'".format(owner, name))

    return wiki_id


if __name__ == "__main__":
    import wstore.config

    argparser = wstore.config.getArgParser(description="Create a new wiki")
    Database.set_argparser(argparser)

    argparser.add_argument("--name", required=True,
            help="display name of the wiki")
    argparser.add_argument("--slug", required=True,
            help="URL slug of the wiki, normalized automatically")
    argparser.add_argument("--domain", required=True,
            help="domain on which the wiki is served")
    argparser.add_argument("--page-lock-duration", metavar="SECONDS", type=int, default=900,
            help="how long a page stays locked for editing (default: %(default)s)")
    argparser.add_argument("--owner", metavar="USERNAME",
            help="existing user who becomes the owner of the wiki")

    args = wstore.config.parse_args(argparser)

    db = Database.from_argparser(args)
    wiki_id = create_wiki(db, args.name, args.slug, args.domain,
                          page_lock_duration=args.page_lock_duration, owner=args.owner)
    print("Created wiki ID {}".format(wiki_id))
