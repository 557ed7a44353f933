"""Bearer token issuance and verification (HS256 JWT)"""

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from payment_proxy.config import Settings
from payment_proxy.domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class TokenService:
    """Issues and verifies API client tokens"""

    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.expires_minutes = settings.jwt_expires_minutes
        self._client_id = settings.client_id
        self._client_secret = settings.client_secret

    def validate_client_credentials(self, client_id: str, client_secret: str) -> bool:
        return hmac.compare_digest(client_id, self._client_id) and hmac.compare_digest(
            client_secret, self._client_secret
        )

    def create_token(self, client_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": client_id,
            "client_id": client_id,
            "iat": now,
            "exp": now + timedelta(minutes=self.expires_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a bearer token.

        Raises:
            AuthenticationError: Signature, expiry or payload is invalid
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid bearer token: {e}")
            raise AuthenticationError("Invalid token") from e

        if not payload.get("client_id"):
            raise AuthenticationError("Token has no client_id")
        return payload
