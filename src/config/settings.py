"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class uses pydantic-settings to read configuration from TWO
# sources (in priority order):
#
#   1. **Environment variables** — e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** — key=value lines in the project root .env file
#
# Field name `openai_api_key` maps to env var `OPENAI_API_KEY`.
# Default values are used when neither an env var nor a .env entry exists.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Knowledge ingestion service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / Embedding Providers ===
    # Empty string = "not configured" → main.py falls through to Ollama.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, etc.)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3.1"
    embedding_dimension: int = 768

    # === Knowledge Store ===
    knowledge_store_backend: str = "sqlite"  # "sqlite" | "memory"
    knowledge_db_path: str = "data/knowledge.db"

    # === Chunking ===
    # Units are characters.
    chunk_size: int = 500
    chunk_overlap: int = 50

    # === Embedding & Tagging ===
    enrichment_concurrency: int = 8
    tagging_enabled: bool = True

    # === Sync ===
    max_concurrent_syncs: int = 4
    resource_fetch_timeout: float = 30.0
    # Start a sync as soon as a source is registered.
    sync_on_create: bool = True

    # === Website Crawler ===
    crawler_user_agent: str = "KnowledgeIngest-Crawler/1.0"
    crawler_rate_limit_seconds: float = 1.0
    crawler_share_origin_rate_limit: bool = True
    crawler_default_max_depth: int = 2
    crawler_default_max_pages: int = 10

    # === Cron ===
    # Empty disables POST /api/v1/cron/sync-all.
    cron_secret: str = ""

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that are configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
