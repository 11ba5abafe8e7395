"""
Centralized configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict

from forge.schema.models import ServiceCredential


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "ReportForge"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_KEY: str = ""

    # Crystal Reports Server (renderer)
    CRYSTAL_SERVER_URL: str = "http://localhost:8080"
    CRYSTAL_REPORTS_PATH: str = "/reports"
    CRYSTAL_USERNAME: str = ""
    CRYSTAL_PASSWORD: str = ""
    CRYSTAL_TIMEOUT_SECONDS: float = 60.0

    # IFS Cloud (document storage + identity)
    IFS_CLOUD_URL: str = "http://localhost:8081"
    IFS_UPLOAD_BASE: str = "/main/ifsapplications/projection/v1/ExternalReportsGateway.svc"
    IFS_IAM_URL: str = "http://localhost:8081/auth/realms/ifs/protocol/openid-connect/token"
    IFS_CLIENT_ID: str = ""
    IFS_CLIENT_SECRET: str = ""
    IFS_SERVICE_USER: str = ""
    IFS_SERVICE_PASSWORD: str = ""
    IFS_TIMEOUT_SECONDS: float = 30.0
    IFS_TRANSFER_TIMEOUT_SECONDS: float = 300.0

    # Token lifecycle
    TOKEN_SAFETY_MARGIN: float = 0.9

    # Health
    HEALTH_PROBE_TIMEOUT_SECONDS: float = 5.0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @property
    def platform_base_url(self) -> str:
        """IFS Cloud URL joined with the gateway projection path."""
        return f"{self.IFS_CLOUD_URL.rstrip('/')}{self.IFS_UPLOAD_BASE}"

    @property
    def service_credential(self) -> ServiceCredential:
        """The single fixed service identity used for every upload."""
        return ServiceCredential(
            client_id=self.IFS_CLIENT_ID,
            client_secret=self.IFS_CLIENT_SECRET,
            service_username=self.IFS_SERVICE_USER,
            service_password=self.IFS_SERVICE_PASSWORD,
            identity_endpoint=self.IFS_IAM_URL,
        )


# Global settings instance
settings = Settings()
