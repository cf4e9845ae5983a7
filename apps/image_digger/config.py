# apps/image_digger/config.py
#
# Env / .env settings. PUBLIC_HOST is required: no default, startup fails
# without it.

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # public-facing host used to build /article?guid=... links (REQUIRED)
    public_host: str
    public_scheme: str = "https"
    port: int = 3000

    # flat-file image cache (wiped at startup)
    cache_file: str = "/tmp/image-digger-cache.json"

    # how many of the newest feed items get scanned
    feed_item_limit: int = 10
    # None = unbounded fan-out across articles
    scan_concurrency: Optional[int] = None

    class Config:
        env_file = ".env"

    @property
    def public_base_url(self) -> str:
        return f"{self.public_scheme}://{self.public_host.strip().rstrip('/')}"
