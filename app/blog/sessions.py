"""
Server-side session store.

Flask's default session keeps everything in a signed cookie. Here the cookie
only carries a signed, random session id; the session dict lives in the
`sessions` table so that logging out actually revokes the session.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from flask import Flask, Request
from flask.sessions import SessionInterface, SessionMixin, session_json_serializer
from itsdangerous import BadSignature, Signer, want_bytes
from sqlalchemy import delete
from sqlalchemy.orm import Session
from werkzeug.datastructures import CallbackDict
from werkzeug.wrappers import Response

from app.blog.models import SessionRecord
from app.blog.utils import utcnow

logger = logging.getLogger(__name__)


def _new_sid() -> str:
    return secrets.token_urlsafe(32)


class ServerSession(CallbackDict, SessionMixin):
    def __init__(self, initial=None, sid: str | None = None, new: bool = False):
        def on_update(self):
            self.modified = True

        super().__init__(initial, on_update)
        self.sid = sid or _new_sid()
        self.new = new
        self.modified = False
        self.replaced_sid: str | None = None

    def regenerate(self) -> None:
        """Move the session to a fresh id (call on login to avoid fixation)."""
        if not self.new and self.replaced_sid is None:
            self.replaced_sid = self.sid
        self.sid = _new_sid()
        self.new = True
        self.modified = True


class DatabaseSessionInterface(SessionInterface):
    session_class = ServerSession
    serializer = session_json_serializer
    salt = "blog-session"

    def _signer(self, app: Flask) -> Signer | None:
        if not app.secret_key:
            return None
        return Signer(app.secret_key, salt=self.salt, key_derivation="hmac")

    def _db(self, app: Flask) -> Session:
        return app.extensions["sqlalchemy_sessionmaker"]()

    def open_session(self, app: Flask, request: Request) -> ServerSession | None:
        signer = self._signer(app)
        if signer is None:
            return None
        cookie = request.cookies.get(self.get_cookie_name(app))
        if not cookie:
            return self.session_class(new=True)
        try:
            sid = signer.unsign(want_bytes(cookie)).decode("utf-8")
        except BadSignature:
            logger.warning("Ignoring session cookie with bad signature")
            return self.session_class(new=True)

        s = self._db(app)
        try:
            record = s.get(SessionRecord, sid)
            if record is None:
                return self.session_class(new=True)
            if record.expires_at <= utcnow():
                s.delete(record)
                s.commit()
                return self.session_class(new=True)
            data = self.serializer.loads(record.data)
        finally:
            s.close()
        return self.session_class(data, sid=sid)

    def save_session(self, app: Flask, session: ServerSession, response: Response) -> None:  # type: ignore[override]
        signer = self._signer(app)
        if signer is None:
            return
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)
        secure = self.get_cookie_secure(app)
        samesite = self.get_cookie_samesite(app)
        httponly = self.get_cookie_httponly(app)

        if session.accessed:
            response.vary.add("Cookie")

        s = self._db(app)
        try:
            if session.replaced_sid:
                s.execute(delete(SessionRecord).where(SessionRecord.sid == session.replaced_sid))

            if not session:
                # Empty session: drop the stored row (if any) and the cookie.
                if session.modified:
                    s.execute(delete(SessionRecord).where(SessionRecord.sid == session.sid))
                    response.delete_cookie(
                        name, domain=domain, path=path, secure=secure, samesite=samesite, httponly=httponly
                    )
                s.commit()
                return

            if not self.should_set_cookie(app, session):
                s.commit()
                return

            cookie_expires = self.get_expiration_time(app, session)
            stored_expires = cookie_expires or (utcnow() + app.permanent_session_lifetime)
            if stored_expires.tzinfo is not None:
                stored_expires = stored_expires.replace(tzinfo=None)

            record = s.get(SessionRecord, session.sid)
            payload = self.serializer.dumps(dict(session))
            if record is None:
                s.add(SessionRecord(sid=session.sid, data=payload, expires_at=stored_expires))
            else:
                record.data = payload
                record.expires_at = stored_expires
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

        response.set_cookie(
            name,
            signer.sign(want_bytes(session.sid)).decode("utf-8"),
            expires=cookie_expires,
            httponly=httponly,
            domain=domain,
            path=path,
            secure=secure,
            samesite=samesite,
        )


def purge_expired_sessions(s: Session, *, now: datetime | None = None) -> int:
    """Delete expired session rows. Returns the number removed."""
    cutoff = now or utcnow()
    result = s.execute(delete(SessionRecord).where(SessionRecord.expires_at <= cutoff))
    return result.rowcount or 0
