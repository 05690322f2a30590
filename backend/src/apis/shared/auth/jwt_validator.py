"""JWT token validation for Entra ID OIDC."""

import logging
import os
from typing import Optional
import jwt
from jwt import PyJWKClient
from fastapi import HTTPException, status

from .models import User

logger = logging.getLogger(__name__)


class EntraIDJWTValidator:
    """Validates JWT tokens from Entra ID (Azure AD)."""

    def __init__(self):
        """Initialize validator with configuration from environment."""
        self.tenant_id = os.getenv('ENTRA_TENANT_ID')
        self.client_id = os.getenv('ENTRA_CLIENT_ID')

        if not self.tenant_id or not self.client_id:
            raise ValueError(
                "ENTRA_TENANT_ID and ENTRA_CLIENT_ID environment variables are required"
            )

        self.issuer = f"https://login.microsoftonline.com/{self.tenant_id}/v2.0"
        self.jwks_uri = f"https://login.microsoftonline.com/{self.tenant_id}/discovery/v2.0/keys"

        # Acceptable audiences:
        # - client_id: For ID tokens
        # - api://{client_id}: For access tokens with API scope
        self.acceptable_audiences = [
            self.client_id,
            f"api://{self.client_id}",
        ]

        self.jwks_client = PyJWKClient(
            self.jwks_uri,
            cache_keys=True,
            max_cached_keys=5
        )

    def validate_token(self, token: str) -> User:
        """
        Validate JWT token and extract user information.

        - Issuer: https://login.microsoftonline.com/{tenant_id}/v2.0
        - Audience: client_id (for ID tokens) or api://{client_id} (for access tokens)
        - Algorithms: RS256

        Args:
            token: JWT token string

        Returns:
            User object with extracted information

        Raises:
            HTTPException: 401 if the token is invalid
        """
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)

            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=['RS256'],
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": False,  # We'll verify audience manually
                    "verify_iss": True,
                    "verify_exp": True,
                }
            )

            aud = payload.get('aud')
            audiences = [aud] if isinstance(aud, str) else (aud or [])
            if not any(a in self.acceptable_audiences for a in audiences):
                logger.warning(
                    f"Token audience '{aud}' not in acceptable audiences: {self.acceptable_audiences}"
                )
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=f"Invalid token audience. Expected one of: {self.acceptable_audiences}"
                )

            user_id = payload.get('oid') or payload.get('sub')
            if not user_id:
                logger.warning("Token has neither 'oid' nor 'sub' claim")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid user."
                )

            email = payload.get('email') or payload.get('preferred_username')
            name = payload.get('name') or (
                f"{payload.get('given_name', '')} {payload.get('family_name', '')}"
            ).strip()

            return User(
                user_id=user_id,
                email=email.lower() if email else "",
                name=name,
                roles=payload.get('roles', []),
                picture=payload.get('picture')
            )

        except HTTPException:
            raise
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token expired."
            )
        except jwt.InvalidIssuerError as e:
            logger.error(f"Invalid token issuer: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token issuer. Expected: {self.issuer}"
            )
        except jwt.PyJWTError as e:
            logger.error(f"Invalid token: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token."
            )


# Global validator instance
_validator: Optional[EntraIDJWTValidator] = None


def get_validator() -> EntraIDJWTValidator:
    """Get or create the global validator instance."""
    global _validator
    if _validator is None:
        _validator = EntraIDJWTValidator()
    return _validator
