import logging
import sys

from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    base_url: str = "https://cloudmanager.adobe.io"
    org_id: str = ""
    api_key: str = ""
    access_token: str = ""
    request_timeout: float = 60.0

    # Tailing settings (seconds)
    step_log_backoff: float = 5.0
    environment_log_backoff: float = 2.0
    command_log_backoff: float = 5.0
    command_max_not_ready: int = 3  # Not-ready responses before re-checking command status
    rollover_window_minutes: int = 5  # Either side of UTC midnight

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "CM_"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

def configure_logging(level: str = None):
    """Send SDK logs to stdout."""
    settings = get_settings()
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
