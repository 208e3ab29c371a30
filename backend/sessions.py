import logging
import secrets
from collections import namedtuple
from dataclasses import dataclass

from models import LoginSession, User, utcnow

log = logging.getLogger(__name__)

TOKEN_BYTES = 24


@dataclass(frozen=True)
class Identity:
    id: int
    email: str

    def to_dict(self):
        return {"id": self.id, "email": self.email}


ResolvedSession = namedtuple("ResolvedSession", "session_id user_id identity")


class SessionManager:
    """Opaque server-side sessions with a fixed lifetime from creation."""

    def __init__(self, session, ttl=None, clock=utcnow):
        self.session = session
        self.ttl = ttl
        self.clock = clock

    def create(self, user_id):
        token = secrets.token_hex(TOKEN_BYTES)
        self.session.add(LoginSession(id=token, user_id=user_id, created_at=self.clock()))
        self.session.commit()
        log.info("Opened session for user %s", user_id)
        return token

    def resolve(self, token):
        if not token or not isinstance(token, str):
            return None
        row = (self.session.query(LoginSession, User)
               .join(User, User.id == LoginSession.user_id)
               .filter(LoginSession.id == token)
               .first())
        if row is None:
            return None

        login, user = row
        if self._expired(login):
            self.session.delete(login)
            self.session.commit()
            log.info("Dropped expired session for user %s", user.id)
            return None
        return ResolvedSession(login.id, user.id, Identity(user.id, user.email))

    def revoke(self, token):
        if not token:
            return
        deleted = self.session.query(LoginSession).filter_by(id=token).delete()
        self.session.commit()
        if deleted:
            log.info("Revoked session")

    def purge_expired(self):
        if not self.ttl:
            return 0
        cutoff = self.clock() - self.ttl
        count = (self.session.query(LoginSession)
                 .filter(LoginSession.created_at <= cutoff)
                 .delete(synchronize_session=False))
        self.session.commit()
        return count

    def _expired(self, login):
        if not self.ttl:
            return False
        return login.created_at + self.ttl <= self.clock()
