"""Emergency Rescue configuration — loaded from environment / .env file."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="RESCUE_", extra="ignore")

    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./rescue.db"
    encryption_key: str = "change-me"  # Fernet key for the stored rescue secret

    # Host filesystem layout
    content_dir: Path = Path("content")
    plugins_dir: Path | None = None  # default: <content_dir>/plugins
    themes_dir: Path | None = None  # default: <content_dir>/themes
    audit_log_path: Path | None = None  # default: <content_dir>/rescue_log.txt
    debug_log_path: Path | None = None  # default: <content_dir>/debug.log

    # Request surface
    param_name: str = "rescue_key"
    toggle_param: str = "rescue_debug_toggle"
    cookie_prefix: str = "rescue_debug_"

    secret_length: int = Field(default=32, ge=32)
    flag_ttl_seconds: int = 3600
    flag_token_per_name: bool = False  # mix the flag name into the cookie token
    debug_log_max_bytes: int = 20480

    # Admin API (disabled while empty)
    admin_token: str = ""

    # Links shown on the recovery page
    home_url: str = "/"
    admin_url: str = "/admin"

    @property
    def plugin_root(self) -> Path:
        return self.plugins_dir or self.content_dir / "plugins"

    @property
    def theme_root(self) -> Path:
        return self.themes_dir or self.content_dir / "themes"

    @property
    def audit_log_file(self) -> Path:
        return self.audit_log_path or self.content_dir / "rescue_log.txt"

    @property
    def debug_log_file(self) -> Path:
        return self.debug_log_path or self.content_dir / "debug.log"


settings = Settings()
