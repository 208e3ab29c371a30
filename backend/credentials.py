import logging

from sqlalchemy.exc import IntegrityError

from errors import Conflict, InvalidCredentials, ValidationError
from models import User

log = logging.getLogger(__name__)


def normalize_handle(email):
    # Handles are case-sensitive; only surrounding whitespace is dropped.
    if not isinstance(email, str):
        return ""
    return email.strip()


class CredentialStore:
    """Users and their bcrypt password hashes."""

    def __init__(self, session, bcrypt):
        self.session = session
        self.bcrypt = bcrypt
        # Compared against for unknown handles so every failed login costs one check.
        self._dummy_hash = bcrypt.generate_password_hash("not-a-real-password")

    def register(self, email, password):
        email = normalize_handle(email)
        if not email or not isinstance(password, str) or not password:
            raise ValidationError("email and password required")

        if self._find(email):
            raise Conflict("email already exists")

        pw_hash = self.bcrypt.generate_password_hash(password).decode('utf-8')
        user = User(email=email, password_hash=pw_hash)
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same handle.
            self.session.rollback()
            raise Conflict("email already exists")
        log.info("Registered user %s", user.id)
        return user.id

    def verify(self, email, password):
        email = normalize_handle(email)
        if not isinstance(password, str):
            password = ""
        user = self._find(email) if email else None

        if user is None:
            # Burn the same bcrypt work so unknown handles are not distinguishable.
            self.bcrypt.check_password_hash(self._dummy_hash, password)
            raise InvalidCredentials()
        if not self.bcrypt.check_password_hash(user.password_hash, password):
            raise InvalidCredentials()
        return user.id

    def _find(self, email):
        return self.session.query(User).filter_by(email=email).first()
