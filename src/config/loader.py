"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  — Static defaults checked into the repo
#   2. .env file           — Local developer overrides (not committed)
#   3. Environment vars    — Set at deploy time
#
# The _deep_merge helper does recursive dict merging:
#   base = {"crawler": {"rate_limit_seconds": 1.0}}
#   overrides = {"crawler": {"user_agent": "bot/1.0"}}
#   result = {"crawler": {"rate_limit_seconds": 1.0, "user_agent": "bot/1.0"}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "openai_base_url": settings.openai_base_url,
            "ollama_base_url": settings.ollama_base_url,
            "available_providers": settings.get_available_llm_providers(),
        },
        "store": {
            "backend": settings.knowledge_store_backend,
            "db_path": settings.knowledge_db_path,
        },
        "chunking": {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
        },
        "sync": {
            "max_concurrent_syncs": settings.max_concurrent_syncs,
            "resource_fetch_timeout": settings.resource_fetch_timeout,
        },
        "crawler": {
            "user_agent": settings.crawler_user_agent,
            "rate_limit_seconds": settings.crawler_rate_limit_seconds,
            "share_origin_rate_limit": settings.crawler_share_origin_rate_limit,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
