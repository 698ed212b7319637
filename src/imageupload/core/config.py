"""Configuration management for the EC2 image uploader."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "ec2-image-upload"
    SERVICE_VERSION: str = "0.1.0"
    SERVICE_RELEASE: str = "2026-10-18"
    LOG_LEVEL: str = "WARNING"

    # Upload Configuration
    PART_SIZE_MB: int = 10
    PRESIGN_EXPIRES_SECONDS: int = 604800  # 7 days, the SigV4 maximum

    # Remote Call Configuration
    POLL_INTERVAL_SECONDS: float = 10
    MAX_ATTEMPTS: int = 10
    REQUEST_TIMEOUT: int = 300  # seconds per HTTP request

    # EC2 Configuration
    ROOT_VOLUME_SIZE_GB: int = 10
    EC2_API_VERSION: str = "2014-09-01"
    EC2_REGISTER_API_VERSION: str = "2016-11-15"

    # SNS Configuration
    SNS_API_VERSION: str = "2010-03-31"

    @property
    def part_size_bytes(self) -> int:
        """Convert PART_SIZE_MB to bytes."""
        return self.PART_SIZE_MB * 1024 * 1024

    @property
    def log_level(self) -> str:
        """Normalized LOG_LEVEL name for the logging module."""
        return self.LOG_LEVEL.upper()


# Singleton settings instance
settings = Settings()
