import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="false"):
    return os.getenv(name, default).lower() == "true"


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///plantkeeper.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET", "super-secret-key-please-change")
    JWT_TOKEN_LOCATION = ["cookies", "headers"]
    JWT_ACCESS_COOKIE_NAME = "pk_session"
    JWT_COOKIE_SAMESITE = "Lax"
    JWT_COOKIE_SECURE = _flag("COOKIE_SECURE")
    JWT_COOKIE_CSRF_PROTECT = _flag("COOKIE_CSRF_PROTECT")
    JWT_SESSION_COOKIE = False

    # Sessions have a fixed lifetime from login; the signed cookie matches it.
    SESSION_TTL = timedelta(hours=int(os.getenv("SESSION_TTL_HOURS", str(24 * 30))))
    JWT_ACCESS_TOKEN_EXPIRES = SESSION_TTL

    BCRYPT_LOG_ROUNDS = int(os.getenv("BCRYPT_LOG_ROUNDS", "11"))
    BCRYPT_HANDLE_LONG_PASSWORDS = True

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")
