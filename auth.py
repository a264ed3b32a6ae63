"""
Password hashing and session tokens.

Passwords are stored as bcrypt hashes. Accounts imported from the old shop may
still carry ``<pbkdf2-sha512 hex>.<salt>`` values; those verify here and are
re-hashed with bcrypt on the next successful login.

The session is a signed JWT kept in an HttpOnly cookie.
"""

import hashlib
import hmac
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Response

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
SESSION_COOKIE = os.getenv("SESSION_COOKIE_NAME", "lumina_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "0") == "1"
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
LEGACY_ITERATIONS = 1000
LEGACY_KEY_LENGTH = 64


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def _legacy_hash(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        "sha512", password.encode(), salt.encode(), LEGACY_ITERATIONS, dklen=LEGACY_KEY_LENGTH
    ).hex()


def verify_password(supplied: str, stored: str) -> bool:
    if not stored:
        return False
    if stored.startswith(BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(supplied.encode(), stored.encode())
        except ValueError:
            # malformed hash or a password past bcrypt's 72-byte limit
            return False
    if "." in stored:
        stored_hash, salt = stored.split(".", 1)
        return hmac.compare_digest(_legacy_hash(supplied, salt), stored_hash)
    logger.warning("Unrecognised password hash format")
    return False


def needs_rehash(stored: str) -> bool:
    return not stored.startswith(BCRYPT_PREFIXES)


def create_token(user: dict) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user["id"],
        "iat": now,
        "exp": now + timedelta(seconds=SESSION_MAX_AGE),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        logger.info("Session token expired")
    except jwt.InvalidTokenError:
        logger.info("Rejected invalid session token")
    return None


def set_session_cookie(response: Response, user: dict):
    response.set_cookie(
        SESSION_COOKIE,
        create_token(user),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def clear_session_cookie(response: Response):
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax", secure=COOKIE_SECURE)
