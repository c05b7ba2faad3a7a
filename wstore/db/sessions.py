#!/usr/bin/env python3

import logging

import sqlalchemy as sa

from .StoreBase import StoreBase
from .exceptions import UserNotFound

logger = logging.getLogger(__name__)

__all__ = ["Sessions"]


class Sessions(StoreBase):
    """
    Login attempts and the sessions started by successful ones.

    Login attempts are an audit log: the database rejects any change or
    removal of recorded attempts.
    """

    def __init__(self, db):
        super().__init__(db)

        self.sql = {
            ("insert", "login_attempts"):
                db.login_attempts.insert().returning(db.login_attempts.c.login_attempt_id),
            ("insert", "sessions"):
                db.sessions.insert().returning(db.sessions.c.session_id),
        }

    def record_login_attempt(self, *, user_id=None, username_or_email=None, remote_address=None, success):
        """
        :param user_id: ``None`` when the submitted name does not match any user
        :returns: the ID of the recorded attempt
        """
        entry = {
            "user_id": user_id,
            "username_or_email": username_or_email,
            "remote_address": remote_address,
            "success": success,
        }
        with self.db.engine.begin() as conn:
            try:
                attempt_id = conn.execute(self.sql["insert", "login_attempts"], entry).scalar_one()
            except sa.exc.IntegrityError as e:
                self.rewrap(e, {"login_attempts_user_id_fkey": UserNotFound(f"user ID {user_id}")})
        if success:
            logger.info("Successful login of user ID {} from {}".format(user_id, remote_address))
        else:
            logger.warning("Failed login attempt for '{}' (user ID {}) from {}".format(
                username_or_email, user_id, remote_address))
        return attempt_id

    def login_attempts(self, user_id=None, *, limit=None):
        """
        :returns: login attempts, newest first
        """
        la = self.db.login_attempts
        query = la.select().order_by(la.c.attempted_at.desc(), la.c.login_attempt_id.desc())
        if user_id is not None:
            query = query.where(la.c.user_id == user_id)
        if limit is not None:
            query = query.limit(limit)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def create(self, user_id, login_attempt_id):
        """
        Start a session for a successful login attempt.

        :returns: the session ID
        :raises ValueError:
            when the login attempt does not exist, was not successful or
            belongs to a different user
        """
        la = self.db.login_attempts
        with self.db.engine.begin() as conn:
            attempt = conn.execute(la.select().where(la.c.login_attempt_id == login_attempt_id)).first()
            if attempt is None:
                raise ValueError(f"login attempt ID {login_attempt_id} does not exist")
            if not attempt.success:
                raise ValueError(f"login attempt ID {login_attempt_id} was not successful")
            if attempt.user_id != user_id:
                raise ValueError(f"login attempt ID {login_attempt_id} does not belong to user ID {user_id}")
            session_id = conn.execute(self.sql["insert", "sessions"],
                                      {"user_id": user_id, "login_attempt_id": login_attempt_id}).scalar_one()
        logger.info("Started session ID {} for user ID {}".format(session_id, user_id))
        return session_id

    def get(self, session_id):
        sessions = self.db.sessions
        with self.db.engine.connect() as conn:
            return conn.execute(sessions.select().where(sessions.c.session_id == session_id)).first()

    def user_sessions(self, user_id):
        sessions = self.db.sessions
        query = sessions.select().where(sessions.c.user_id == user_id).order_by(sessions.c.session_id)
        with self.db.engine.connect() as conn:
            return conn.execute(query).all()

    def end(self, session_id):
        """
        :returns: ``True`` if the session existed
        """
        sessions = self.db.sessions
        with self.db.engine.begin() as conn:
            ended = conn.execute(sessions.delete().where(sessions.c.session_id == session_id)).rowcount > 0
        if ended:
            logger.info("Ended session ID {}".format(session_id))
        return ended

    def end_all(self, user_id):
        """
        :returns: the number of ended sessions
        """
        sessions = self.db.sessions
        with self.db.engine.begin() as conn:
            count = conn.execute(sessions.delete().where(sessions.c.user_id == user_id)).rowcount
        logger.info("Ended {} sessions of user ID {}".format(count, user_id))
        return count
