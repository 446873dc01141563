"""Global configuration — loaded from environment variables.

Only the CLI reads ``settings``; library classes take plain values at
construction time.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class OpenRibcageSettings(BaseSettings):
    base_url: str = ""
    log_level: str = "INFO"

    # HTTP
    timeout: float = 30.0
    stream_timeout: float = 300.0  # 5 minutes
    default_headers: dict[str, str] = Field(default_factory=dict)

    # Discovery
    retry_attempts: int = 3
    retry_delay: float = 2.0

    # Registry
    cleanup_interval: float = 300.0
    stale_threshold: float = 600.0
    health_interval: float = 60.0

    # Credentials (applied verbatim, never refreshed)
    auth_type: str = "none"  # none|bearer|apikey
    auth_token: str = ""
    auth_api_key: str = ""

    model_config = {"env_prefix": "OPENRIBCAGE_"}


settings = OpenRibcageSettings()
