from __future__ import annotations

import secrets
from typing import Optional

from cachelib import BaseCache, SimpleCache
from flask import Flask, Request, Response
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict

SESSION_TIMEOUT = 60 * 60 * 24  # a day, matches a working session on a prototype
KEY_PREFIX = "session:"


class StoredSession(CallbackDict, SessionMixin):
    """Session dict that remembers its id and whether it was changed."""

    def __init__(self, initial=None, sid: Optional[str] = None, new: bool = False):
        def on_update(self):
            self.modified = True

        super().__init__(initial, on_update)
        self.sid = sid
        self.new = new
        self.modified = False


SESSION_THRESHOLD = 10000


def make_session_store(threshold: int = SESSION_THRESHOLD) -> BaseCache:
    """In-process session store holding at most ``threshold`` sessions.

    Past the cap SimpleCache prunes expired entries and then drops entries
    to make room, which logs those visitors out. Pass any other cachelib
    backend to ``create_app`` to share sessions or lift the cap.
    """
    return SimpleCache(threshold=threshold, default_timeout=SESSION_TIMEOUT)


class CacheSessionInterface(SessionInterface):
    """Server-side sessions kept in a cachelib store.

    Only the session id travels in the cookie. Unchanged sessions are not
    written back, and a new session that stays empty never sets a cookie.
    """

    session_class = StoredSession

    def __init__(self, store: BaseCache, cookie_name: Optional[str] = None):
        self.store = store
        self.cookie_name = cookie_name

    def get_cookie_name(self, app: Flask) -> str:
        return self.cookie_name or super().get_cookie_name(app)

    def _new_sid(self) -> str:
        return secrets.token_urlsafe(32)

    def open_session(self, app: Flask, request: Request) -> StoredSession:
        sid = request.cookies.get(self.get_cookie_name(app))
        if sid:
            data = self.store.get(KEY_PREFIX + sid)
            if data is not None:
                return self.session_class(data, sid=sid)
        return self.session_class(sid=self._new_sid(), new=True)

    def save_session(self, app: Flask, session: StoredSession, response: Response) -> None:
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if not session:
            if session.modified and not session.new:
                self.store.delete(KEY_PREFIX + session.sid)
                response.delete_cookie(name, domain=domain, path=path)
            return

        if not self.should_set_cookie(app, session):
            return

        self.store.set(KEY_PREFIX + session.sid, dict(session), timeout=SESSION_TIMEOUT)
        response.set_cookie(
            name,
            session.sid,
            expires=self.get_expiration_time(app, session),
            httponly=self.get_cookie_httponly(app),
            domain=domain,
            path=path,
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
        )
