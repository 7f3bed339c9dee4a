"""Server-side session storage keyed by an opaque cookie token."""

from __future__ import annotations

import secrets
import threading
from typing import Any

from flask import Flask, Request, Response
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict


class SessionStore:
    """Thread-safe in-process mapping of session token to session data."""

    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_token() -> str:
        return secrets.token_urlsafe(32)

    def get(self, token: str | None) -> dict[str, Any] | None:
        if not token:
            return None
        with self._lock:
            data = self._sessions.get(token)
            return dict(data) if data is not None else None

    def put(self, token: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._sessions[token] = dict(data)

    def delete(self, token: str | None) -> bool:
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class ServerSideSession(CallbackDict, SessionMixin):
    """``flask.session`` object whose contents live in a :class:`SessionStore`."""

    def __init__(self, initial: dict | None = None, token: str | None = None) -> None:
        def on_update(self) -> None:
            self.modified = True

        super().__init__(initial, on_update)
        self.token = token
        self.new = token is None
        self.modified = False
        self.retired_token: str | None = None

    def rotate(self) -> None:
        """Issue a fresh token on the next save and drop the current one."""

        if self.token and self.retired_token is None:
            self.retired_token = self.token
        self.token = None
        self.modified = True


class ServerSideSessionInterface(SessionInterface):
    """Flask session interface that keeps only the token in the cookie."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def open_session(self, app: Flask, request: Request) -> ServerSideSession:
        token = request.cookies.get(self.get_cookie_name(app))
        data = self.store.get(token)
        if data is None:
            return ServerSideSession()
        return ServerSideSession(data, token=token)

    def save_session(
        self, app: Flask, session: ServerSideSession, response: Response
    ) -> None:
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if session.accessed:
            response.vary.add("Cookie")

        if session.retired_token:
            self.store.delete(session.retired_token)
            session.retired_token = None

        if not session:
            if session.modified or session.token:
                self.store.delete(session.token)
                response.delete_cookie(name, domain=domain, path=path)
            return

        if not session.modified and session.token:
            return

        if session.token is None:
            session.token = self.store.new_token()
        self.store.put(session.token, dict(session))
        response.set_cookie(
            name,
            session.token,
            httponly=self.get_cookie_httponly(app),
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
            domain=domain,
            path=path,
        )
