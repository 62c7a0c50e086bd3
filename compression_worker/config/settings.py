from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "scans"
    db_username: str = "scans"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    backend: str = "postgres"

    worker_concurrency: int = 2
    job_poll_interval_seconds: int = 5
    lease_ttl_seconds: int = 600
    queue_stats_interval_seconds: int = 60
    finished_job_retention_seconds: int = 24 * 3600

    reconcile_interval_seconds: int = 300
    stale_processing_after_seconds: int = 1800

    max_upload_bytes: int = 2 * 1024 * 1024 * 1024
    transcodable_formats: list[str] = ["ply"]
    compressed_extension: str = "pcsogs"

    storage_backend: str = "supabase"
    supabase_url: str = ""
    supabase_service_key: str = ""
    storage_bucket: str = "scans"
    storage_timeout_seconds: int = 120
    storage_files_root: str = "/app/files"
    storage_public_base_url: str = "http://localhost:3000/files"

    transform_engine: str = "splat-transform"
    splat_transform_command: str = "npx @playcanvas/splat-transform"
    transform_timeout_seconds: int = 600

    notification_subscribe_timeout_seconds: int = 10

    health_host: str = "0.0.0.0"
    health_port: int = 3000
