from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "leetuiux-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "LeetUIUX")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/leetuiux_dev")

    # Object storage (S3 / MinIO)
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    # Base used to build public object URLs; defaults to the S3 endpoint
    storage_public_url: str = os.getenv("STORAGE_PUBLIC_URL", "") or os.getenv("S3_ENDPOINT", "http://minio:9000")
    submissions_bucket: str = os.getenv("SUBMISSIONS_BUCKET", "submissions")
    storage_auto_create_buckets: bool = os.getenv("STORAGE_AUTO_CREATE_BUCKETS", "0") == "1"

    upload_cache_control: str = os.getenv("UPLOAD_CACHE_CONTROL", "3600")

    # Auth
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    access_ttl_min: int = int(os.getenv("ACCESS_TTL_MIN", "60"))
    refresh_ttl_min: int = int(os.getenv("REFRESH_TTL_MIN", "10080"))  # 7d

    # Seeding
    seed_batch_delay_seconds: float = float(os.getenv("SEED_BATCH_DELAY_SECONDS", "0.5"))

settings = Settings()
