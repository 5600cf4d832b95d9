"""
Linkup Backend - Credential Service
=====================================

What:  Password hashing and session tokens behind one narrow seam.
How:   passlib's CryptContext (bcrypt) for passwords, python-jose for HS256
       JWTs. bcrypt is CPU-bound, so hash/verify run in a worker thread.
Who:   UserService (register/login) and the request context builder
       (token -> user id).
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from linkup.config import settings

logger = logging.getLogger(__name__)


class CredentialService:
    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        token_ttl: Optional[timedelta] = None,
        rounds: Optional[int] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.token_ttl = token_ttl or timedelta(days=settings.token_ttl_days)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds or settings.bcrypt_rounds,
        )
        self._dummy_hash: Optional[str] = None

    # ── Passwords ─────────────────────────────────────────────────────────
    async def hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self.pwd_context.hash, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return await asyncio.to_thread(self.pwd_context.verify, password, password_hash)
        except (ValueError, TypeError):
            # Unrecognised or corrupt hash
            logger.warning("Password hash could not be verified")
            return False

    async def burn_verification(self, password: str) -> None:
        """
        Run one verification against a throwaway hash.

        Used when the account does not exist, so the response time matches
        the wrong-password path.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash_password("linkup-timing-equaliser")
        await self.verify_password(password, self._dummy_hash)

    # ── Tokens ────────────────────────────────────────────────────────────
    def create_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.token_ttl).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[str]:
        """Return the user id in a valid token, or None. Never raises."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except (JWTError, ValueError):
            return None
        subject = payload.get("sub")
        return subject if isinstance(subject, str) and subject else None


# Singleton instance
credential_service = CredentialService()
