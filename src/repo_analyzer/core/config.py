"""Configuration management for the Repo Analyzer gateway."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    ENV: str = "local"
    SERVICE_NAME: str = "repo-analyzer-api"
    SERVICE_VERSION: str = "0.1.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Storage Configuration
    STORAGE_BACKEND: str = "s3"  # "s3", "gcs", "local" or "memory"
    STORAGE_BUCKET: str = "repo-analyzer"
    STORAGE_REGION: str = "eu-central-1"
    STORAGE_TIMEOUT_SECONDS: float = 30.0
    PUBLIC_BASE_URL: str = ""  # e.g. an R2 custom domain; overrides backend URLs

    # S3 / S3-compatible (R2, MinIO)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    S3_ENDPOINT_URL: str = ""
    S3_OBJECT_ACL: str = ""  # "public-read" for buckets that still accept ACLs

    # GCP Configuration
    GCP_PROJECT_ID: str = ""

    # Local filesystem backend
    LOCAL_STORAGE_PATH: str = "data/objects"

    # Upload Constraints
    KEY_PREFIX: str = "reports"
    MAX_UPLOAD_MB: int = 10

    # Authentication
    API_KEY: str = ""
    AUTH_DISABLED: bool = False  # development only, never enable in production

    # Analysis jobs
    ANALYSIS_TASK: str = ""  # "package.module:function", empty = external worker
    JOB_TTL_SECONDS: int = 0  # 0 disables eviction of finished jobs
    JOB_REAPER_INTERVAL_SECONDS: int = 60

    @property
    def max_upload_bytes(self) -> int:
        """Convert MAX_UPLOAD_MB to bytes."""
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def public_base_url(self) -> str:
        """Base URL for objects served by this gateway."""
        if self.PUBLIC_BASE_URL:
            return self.PUBLIC_BASE_URL.rstrip("/")
        return f"http://localhost:{self.PORT}"


# Singleton settings instance
settings = Settings()
