#!/usr/bin/env python3

from .database import Database
from .users import Users
from .wikis import Wikis
from .roles import Roles
from .pages import Pages, PageCommit
from .ratings import Ratings
from .files import Files
from .passwords import PasswordStore
from .sessions import Sessions
