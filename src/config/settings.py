"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. **Environment variables**, e.g. ``DATABASE_PATH=/var/lib/kbforge/kb.db``
  2. **.env file** in the working directory (local development)

Field names map to upper-cased env vars automatically.  Defaults apply when
neither source sets a value.  Static configuration that is not secret (the
model registry, logging defaults) lives in ``config/config.yaml`` and is
merged by :func:`src.config.loader.load_config`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """kbForge application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    database_path: str = "data/kbforge.db"
    upload_dir: str = "data/uploads"

    # === Model registry ===
    config_path: str = "config/config.yaml"
    # Fallback credentials for registry entries that leave them blank.
    openai_api_key: str = ""
    openai_base_url: str = ""
    rerank_api_key: str = ""
    rerank_base_url: str = ""

    # === Vectorization ===
    # Upper bound on segments per embedding call; a model's max_chunks may lower it.
    embedding_batch_size: int = 10

    # === Retrieval ===
    # Raw FTS rank is multiplied by this before fusion with cosine scores.
    fulltext_score_multiplier: float = 10.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"

    def get_cors_origins(self) -> list[str]:
        """Return the comma-separated ``cors_origins`` value as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
