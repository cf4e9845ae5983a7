# apps/ai_recap/config.py
#
# Env / .env settings. Missing OPENROUTER_API_KEY only logs a warning.

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    port: int = 3000

    # LLM gateway (OpenRouter chat-completions API)
    openrouter_api_key: Optional[str] = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"

    # flat-file stores (survive requests, not container restarts)
    storage_file: str = "/tmp/ai-daily-recap-storage.json"
    dig_cache_file: str = "/tmp/ai-daily-dig-cache.json"
    dig_ttl_days: int = 7

    # recap knobs
    history_days: int = 5        # days generated when a feed is first seen
    recap_window_days: int = 7   # days of recaps served in the RSS output
    max_recap_articles: int = 50 # cap on articles sent to the LLM per day

    # midnight regeneration loop
    scheduler_enabled: bool = True

    class Config:
        env_file = ".env"


settings = Settings()
