"""Authentication and role checks for the connector API."""

from security.auth import (
    Role,
    TokenData,
    JWTConfig,
    AuthenticationError,
    init_jwt_config,
    get_jwt_config,
    verify_token,
    create_token,
    get_current_user,
    require_role,
    require_admin,
    require_uploader,
    require_viewer,
)

__all__ = [
    "Role",
    "TokenData",
    "JWTConfig",
    "AuthenticationError",
    "init_jwt_config",
    "get_jwt_config",
    "verify_token",
    "create_token",
    "get_current_user",
    "require_role",
    "require_admin",
    "require_uploader",
    "require_viewer",
]
