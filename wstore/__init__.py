#! /usr/bin/env python3

"""
Relational storage for a collaborative wiki platform: users, wikis, pages,
revisions, ratings, authorship, roles, files and login tracking.
"""

__version__ = "0.1"
