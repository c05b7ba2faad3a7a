#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from .StoreBase import StoreBase
from .exceptions import PageNotFound, UserNotFound

logger = logging.getLogger(__name__)

__all__ = ["Ratings"]

# range of the SMALLINT column
RATING_RANGE = range(-2**15, 2**15)


class Ratings(StoreBase):
    """
    Current ratings of pages by users. Every change is also appended to the
    ``ratings_history`` table, where a ``NULL`` rating means that the user
    retracted their rating.
    """

    def __init__(self, db):
        super().__init__(db)

        ins_ratings = sa.dialects.postgresql.insert(db.ratings)
        self.sql = {
            ("insert", "ratings"):
                ins_ratings.on_conflict_do_update(
                    constraint=db.ratings.primary_key,
                    set_={
                        "rating": ins_ratings.excluded.rating,
                    }),
            ("insert", "ratings_history"):
                db.ratings_history.insert(),
        }

    def rate(self, page_id, user_id, rating):
        """
        Set or change the rating of a page by a user.

        :raises ValueError: when the rating does not fit into the column
        """
        if rating not in RATING_RANGE:
            raise ValueError(f"rating out of range: {rating}")
        entry = {"page_id": page_id, "user_id": user_id, "rating": rating}
        with self.db.engine.begin() as conn:
            try:
                conn.execute(self.sql["insert", "ratings"], entry)
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {
                    "ratings_page_id_fkey": PageNotFound(f"page ID {page_id}"),
                    "ratings_user_id_fkey": UserNotFound(f"user ID {user_id}"),
                })
            conn.execute(self.sql["insert", "ratings_history"], entry)
        logger.info("User ID {} rated page ID {} with {}".format(user_id, page_id, rating))

    def retract(self, page_id, user_id):
        """
        Remove the rating of a page by a user.

        :returns: ``True`` if there was a rating to remove
        """
        ratings = self.db.ratings
        query = ratings.delete() \
                       .where(ratings.c.page_id == page_id) \
                       .where(ratings.c.user_id == user_id)
        with self.db.engine.begin() as conn:
            retracted = conn.execute(query).rowcount > 0
            if retracted:
                conn.execute(self.sql["insert", "ratings_history"],
                             {"page_id": page_id, "user_id": user_id, "rating": None})
        if retracted:
            logger.info("User ID {} retracted their rating of page ID {}".format(user_id, page_id))
        return retracted

    def get_rating(self, page_id, user_id):
        """
        :returns: the current rating, or ``None``
        """
        ratings = self.db.ratings
        query = sa.select(ratings.c.rating) \
                  .where(ratings.c.page_id == page_id) \
                  .where(ratings.c.user_id == user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).scalar()

    def ratings(self, page_id):
        ratings = self.db.ratings
        query = ratings.select().where(ratings.c.page_id == page_id).order_by(ratings.c.user_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def score(self, page_id):
        """
        :returns: a tuple ``(sum, count)`` of the current ratings of the page
        """
        ratings = self.db.ratings
        query = sa.select(sa.func.coalesce(sa.func.sum(ratings.c.rating), 0),
                          sa.func.count()) \
                  .where(ratings.c.page_id == page_id)
        with self.db.engine.connect() as conn:
            total, count = conn.execute(query).one()
        return int(total), count

    def history(self, page_id, user_id=None):
        """
        :returns: rows of the ``ratings_history`` table, oldest first
        """
        rh = self.db.ratings_history
        query = rh.select().where(rh.c.page_id == page_id)
        if user_id is not None:
            query = query.where(rh.c.user_id == user_id)
        query = query.order_by(rh.c.rating_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()
