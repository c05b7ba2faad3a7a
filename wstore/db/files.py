#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from .StoreBase import StoreBase
from .exceptions import FileExists, FileNotFound, PageNotFound

logger = logging.getLogger(__name__)

__all__ = ["Files"]


class Files(StoreBase):
    """
    Metadata of files attached to pages. The files themselves are hosted
    elsewhere and referenced by their URI.
    """

    def __init__(self, db):
        super().__init__(db)

        files = db.files
        self.sql = {
            ("insert", "files"):
                files.insert().returning(files.c.file_id),
            ("update", "files"):
                files.update()
                    .where(files.c.file_id == sa.bindparam("b_file_id"))
                    .returning(files.c.file_id),
        }

    @staticmethod
    def _errors(file_name=None, file_uri=None, page_id=None):
        return {
            "files_file_name_key": FileExists(f"file name '{file_name}' is already used"),
            "files_file_uri_key": FileExists(f"file URI '{file_uri}' is already used"),
            "files_page_id_fkey": PageNotFound(f"page ID {page_id}"),
        }

    def add(self, page_id, file_name, file_uri, description=""):
        """
        :returns: the ID of the new file
        :raises FileExists: when the name or the URI is already used
        """
        entry = {
            "page_id": page_id,
            "file_name": file_name,
            "file_uri": file_uri,
            "description": description,
        }
        with self.db.engine.begin() as conn:
            try:
                file_id = conn.execute(self.sql["insert", "files"], entry).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, self._errors(file_name, file_uri, page_id))
        logger.info("Added file '{}' (ID {}) to page ID {}".format(file_name, file_id, page_id))
        return file_id

    def get(self, file_id):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.files.select().where(self.db.files.c.file_id == file_id)).first()

    def get_by_name(self, file_name):
        with self.db.engine.connect() as conn:
            return conn.execute(self.db.files.select().where(self.db.files.c.file_name == file_name)).first()

    def list(self, page_id):
        files = self.db.files
        query = files.select().where(files.c.page_id == page_id).order_by(files.c.file_name)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def _update(self, file_id, values, errors):
        with self.db.engine.begin() as conn:
            try:
                result = conn.execute(self.sql["update", "files"], {"b_file_id": file_id, **values})
            except sa.exc.IntegrityError as e:
                self.rewrap(e, errors)
            if result.first() is None:
                raise FileNotFound(f"file ID {file_id}")

    def set_description(self, file_id, description):
        self._update(file_id, {"description": description}, {})
        logger.info("Changed the description of file ID {}".format(file_id))

    def move(self, file_id, page_id):
        """
        Attach a file to a different page.
        """
        self._update(file_id, {"page_id": page_id}, self._errors(page_id=page_id))
        logger.info("Moved file ID {} to page ID {}".format(file_id, page_id))

    def remove(self, file_id):
        """
        :returns: ``True`` if the file existed
        """
        files = self.db.files
        with self.db.engine.begin() as conn:
            removed = conn.execute(files.delete().where(files.c.file_id == file_id)).rowcount > 0
        if removed:
            logger.info("Removed file ID {}".format(file_id))
        return removed
