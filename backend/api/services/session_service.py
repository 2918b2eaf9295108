"""Signed tenant-session cookies"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

import jwt

logger = logging.getLogger(__name__)


class SessionService:
    """Mint opaque session ids and carry them in a signed JWT cookie"""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_days: int = 30):
        if not secret_key:
            raise ValueError("JWT secret key cannot be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_days = expire_days

    @property
    def max_age(self) -> int:
        return self.expire_days * 24 * 3600

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(24)

    def create_session_token(self, session_id: str) -> str:
        now = datetime.now(UTC)
        payload = {
            "sid": session_id,
            "exp": now + timedelta(days=self.expire_days),
            "iat": now,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str | None:
        """Return the session id carried by a valid cookie, else None"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.debug("Session cookie expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session cookie: {e}")
            return None

        session_id = payload.get("sid")
        return session_id if isinstance(session_id, str) and session_id else None
