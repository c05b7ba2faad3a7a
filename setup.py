#! /usr/bin/env python3

from setuptools import setup, find_packages

import wstore

setup(
    name = "wiki-store",
    version = wstore.__version__,
    packages = find_packages(exclude=["tests", "tests.*"]),
    package_data = {
        "wstore.db": [
            "migrations/env.py",
            "migrations/script.py.mako",
            "migrations/versions/*.py",
        ],
    },
    scripts = [
        "init-db.py",
        "create-wiki.py",
    ],
    python_requires = ">=3.11",
    install_requires = [
        "sqlalchemy>=2.0",
        "alembic",
        "psycopg",
        "colorlog",
        "passlib",
    ],
    extras_require = {
        "test": [
            "pytest",
            "pytest-postgresql>=4.0,<5",
        ],
    },
)
