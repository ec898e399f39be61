"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL-protocol by default, any SQLAlchemy async URL) ─────
    database_url: str = "mysql+aiomysql://root:@mysql:3306/pinboard"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # ── Auth tokens & session cookie ───────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 15
    cookie_name: str = "token"
    cookie_secure: bool = False

    @property
    def token_ttl_seconds(self) -> int:
        return self.token_ttl_days * 24 * 60 * 60

    # ── CORS ───────────────────────────────────────────────────────────────
    cors_origins: list[str] = ["http://localhost:5173"]

    # ── MinIO (S3-compatible image host) ───────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "pins"
    minio_use_ssl: bool = False
    image_folder: str = "pinterest-clone"
    image_url_ttl: int = 3600            # pre-signed URL lifetime (seconds)
    max_image_bytes: int = 10 * 1024 * 1024

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "pinboard-api"
    environment: str = "development"

    # ── Server ─────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 5000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
