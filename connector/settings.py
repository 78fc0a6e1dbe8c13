"""
Connector settings loaded from the environment (and an optional .env file).

    from connector.settings import get_settings
    settings = get_settings()
"""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectorSettings(BaseSettings):
    """Application settings for the upload connector."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = Field("development", description="development / staging / production")
    app_log_level: str = Field("INFO", description="Root log level")
    app_host: str = Field("0.0.0.0", description="Bind address")
    app_port: int = Field(8000, description="Bind port")

    # Resource cache
    redis_url: Optional[str] = Field("redis://localhost:6379", description="Redis URL (empty = LRU only)")
    lru_cache_size: int = Field(1000, ge=1, description="In-process cache entries")

    # Google Ads credentials
    google_ads_developer_token: str = Field("", description="Google Ads developer token")
    google_ads_client_id: str = Field("", description="OAuth client id")
    google_ads_client_secret: str = Field("", description="OAuth client secret")
    google_ads_refresh_token: str = Field("", description="OAuth refresh token")
    google_ads_login_customer_id: Optional[str] = Field(None, description="Default manager account")

    # Cloud Storage
    gcs_project: Optional[str] = Field(None, description="Project for the storage client")

    # JWT
    jwt_jwks_public_path: str = Field("/tmp/jwks-public.json")
    jwt_jwks_private_path: str = Field("/tmp/jwks-private.json")
    api_jwt_audience: str = Field("ads-connector")
    api_jwt_issuer: str = Field("ads-auth")
    jwt_expiry_minutes: int = Field(15, ge=1)

    @property
    def use_mock_ads(self) -> bool:
        """Development runs against the simulated Google Ads gateway."""
        return self.app_env == "development"

    def google_ads_credentials(self) -> Dict[str, Any]:
        """Credentials in the shape accepted by GoogleAdsClient.load_from_dict."""
        credentials: Dict[str, Any] = {
            "developer_token": self.google_ads_developer_token,
            "client_id": self.google_ads_client_id,
            "client_secret": self.google_ads_client_secret,
            "refresh_token": self.google_ads_refresh_token,
            "use_proto_plus": True,
        }
        if self.google_ads_login_customer_id:
            credentials["login_customer_id"] = self.google_ads_login_customer_id
        return credentials


@lru_cache
def get_settings() -> ConnectorSettings:
    """Get the process-wide settings instance."""
    return ConnectorSettings()
