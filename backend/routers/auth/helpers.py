from fastapi import HTTPException, status
from config import JWT_SECRET_KEY, JWT_ALGORITHM
from dataclasses import dataclass
import jwt
import logging
import uuid

logger = logging.getLogger(__name__)


@dataclass
class TokenIdentity:
    id: str
    email: str = None
    role: str = None


class AuthHelpers:
    """Helper functions for identity verification"""

    def verify_token(self, token: str) -> TokenIdentity:
        """
        Verify the identity provider's JWT locally without calling the provider API
        """
        if not JWT_SECRET_KEY:
            logger.error("JWT_SECRET_KEY is not configured")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Authentication is not configured"
            )

        try:
            payload = jwt.decode(
                token,
                JWT_SECRET_KEY,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_signature": True,
                    "verify_aud": False
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token expired"
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user ID"
            )

        try:
            uuid.UUID(str(user_id))
        except ValueError:
            logger.warning(f"JWT subject is not a user ID: {user_id}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: malformed user ID"
            )

        user_metadata = payload.get("user_metadata", {}) or {}
        return TokenIdentity(
            id=user_id,
            email=payload.get("email"),
            role=user_metadata.get("role")
        )


auth_helpers = AuthHelpers()
