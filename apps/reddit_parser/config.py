# apps/reddit_parser/config.py
#
# Env / .env settings. REDDIT_BASE_URL is overridable for tests and mirrors.

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    port: int = 3000
    reddit_base_url: str = "https://www.reddit.com"

    class Config:
        env_file = ".env"


settings = Settings()
