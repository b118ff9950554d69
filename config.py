from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # --- Paths ---
    source_dir: str = "public"
    output_dir: str = "public/optimized-images"
    public_url_prefix: str = "/optimized-images"

    # --- File Limits ---
    max_file_size_mb: int = 32
    max_file_size_bytes: int = 0  # Computed in model_post_init

    # --- Optimization Defaults ---
    default_quality: int = 85
    transcode_timeout_seconds: float = 60

    # --- Cache ---
    cache_ttl_seconds: int = 24 * 60 * 60

    # --- Batch ---
    batch_concurrency: int = 4

    # --- Cleanup ---
    cleanup_max_age_days: int = 7

    # --- Encoder Selection ---
    jpeg_encoder: str = "pillow"  # "pillow" (default) or "cjpeg" (MozJPEG CLI)

    # --- Security ---
    api_key: str = ""
    allowed_origins: str = "*"

    # --- Logging ---
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def model_post_init(self, __context) -> None:
        if self.max_file_size_bytes == 0:
            self.max_file_size_bytes = self.max_file_size_mb * 1024 * 1024
        if self.batch_concurrency < 1:
            self.batch_concurrency = 1


settings = Settings()
