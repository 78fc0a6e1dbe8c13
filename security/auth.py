"""
JWT authentication and role checks for the connector API.

Tokens are RS256-signed; roles gate who may trigger uploads.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Tuple
from enum import Enum
from pathlib import Path

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from connector.errors import ConfigurationError
from connector.settings import ConnectorSettings

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """API roles."""

    ADMIN = "admin"
    UPLOADER = "uploader"
    VIEWER = "viewer"


class TokenData(BaseModel):
    """Decoded JWT claims."""

    sub: str
    role: Role
    aud: str
    iss: str
    exp: datetime
    iat: datetime


class AuthenticationError(Exception):
    """Token missing, expired or invalid."""


def _read_key(path: Optional[str]) -> Optional[str]:
    if path and Path(path).exists():
        return Path(path).read_text()
    return None


def _generate_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair (private, public) in PEM for development."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class JWTConfig:
    """Keys and claims expected on connector tokens."""

    def __init__(
        self,
        public_key: str,
        private_key: Optional[str] = None,
        algorithm: str = "RS256",
        audience: str = "ads-connector",
        issuer: str = "ads-auth",
        expiry_minutes: int = 15,
    ):
        self.public_key = public_key
        self.private_key = private_key
        self.algorithm = algorithm
        self.audience = audience
        self.issuer = issuer
        self.expiry_minutes = expiry_minutes

    @classmethod
    def from_settings(cls, settings: ConnectorSettings) -> "JWTConfig":
        """
        Load keys from the configured paths.

        Outside production a missing public key is replaced by a generated
        pair so tokens can be issued through the development endpoint.
        """
        public_key = _read_key(settings.jwt_jwks_public_path)
        private_key = _read_key(settings.jwt_jwks_private_path)
        if public_key is None:
            if settings.app_env == "production":
                raise ConfigurationError(
                    f"JWT public key not found at {settings.jwt_jwks_public_path}"
                )
            logger.warning("JWT public key not found, using a generated key - NOT FOR PRODUCTION")
            private_key, public_key = _generate_key_pair()

        return cls(
            public_key=public_key,
            private_key=private_key,
            audience=settings.api_jwt_audience,
            issuer=settings.api_jwt_issuer,
            expiry_minutes=settings.jwt_expiry_minutes,
        )


_jwt_config: Optional[JWTConfig] = None


def init_jwt_config(config: JWTConfig) -> None:
    """Install the process-wide JWT configuration."""
    global _jwt_config
    _jwt_config = config
    logger.info("JWT configuration initialized")


def get_jwt_config() -> JWTConfig:
    if _jwt_config is None:
        raise RuntimeError("JWT configuration not initialized")
    return _jwt_config


def verify_token(token: str, config: Optional[JWTConfig] = None) -> TokenData:
    """
    Verify and decode a token.

    Raises:
        AuthenticationError: If the token is invalid
    """
    config = config or get_jwt_config()
    try:
        payload = jwt.decode(
            token,
            config.public_key,
            algorithms=[config.algorithm],
            audience=config.audience,
            issuer=config.issuer,
        )
        return TokenData(
            sub=payload["sub"],
            role=Role(payload["role"]),
            aud=payload["aud"],
            iss=payload["iss"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidAudienceError:
        raise AuthenticationError("Invalid token audience")
    except jwt.InvalidIssuerError:
        raise AuthenticationError("Invalid token issuer")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")
    except (KeyError, ValueError) as e:
        raise AuthenticationError(f"Malformed token claims: {e}")


def create_token(user_id: str, role: Role, config: Optional[JWTConfig] = None) -> str:
    """Sign a token for a user (development and tests)."""
    config = config or get_jwt_config()
    if not config.private_key:
        raise RuntimeError("Private key not configured for token creation")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role.value,
        "aud": config.audience,
        "iss": config.issuer,
        "iat": now,
        "exp": now + timedelta(minutes=config.expiry_minutes),
    }
    return jwt.encode(payload, config.private_key, algorithm=config.algorithm)


security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenData:
    """FastAPI dependency resolving the bearer token to its claims."""
    try:
        return verify_token(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(allowed_roles: List[Role]):
    """Build a dependency accepting only ``allowed_roles``."""
    async def role_checker(token_data: TokenData = Depends(get_current_user)) -> TokenData:
        if token_data.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required roles: {[r.value for r in allowed_roles]}",
            )
        return token_data

    return role_checker


require_admin = require_role([Role.ADMIN])
require_uploader = require_role([Role.ADMIN, Role.UPLOADER])
require_viewer = require_role([Role.ADMIN, Role.UPLOADER, Role.VIEWER])
