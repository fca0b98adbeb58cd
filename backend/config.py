"""Application settings loaded from .env file."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Target application
    DATABASE_URL: str = "sqlite:///./app.db"
    MODELS_MODULE: str = ""          # "package.module:Base"
    MODELS_PATH: str = ""            # only files under this directory are written

    # Schema dump
    INCLUDE_NOTES: bool = True
    SHOW_DEFAULTS: bool = True
    SHOW_INDEXES: bool = True
    SHOW_FOREIGN_KEYS: bool = True
    SHOW_CHECK_CONSTRAINTS: bool = True
    SHOW_COMMENTS: bool = True
    SHOW_TRIGGERS: bool = True
    SHOW_FUNCTIONS: bool = False      # stored functions on abstract bases (PostgreSQL, MySQL)

    # Extensions
    EXTENSIONS_ENABLED: bool = True
    EXTENSIONS_AUTOLOAD: bool = False
    EXTENSIONS_IGNORE: str = ""

    # Advisory notes
    MATVIEW_STALE_HOURS: int = 24

    # Execution
    WORKERS: int = 1

    # Error handling / logging
    RAISE_ON_ERROR: bool = False
    VERBOSE: bool = False
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # HTTP API
    CORS_ORIGINS: str = "http://localhost:5173"

    @property
    def ignored_extension_list(self) -> list[str]:
        return [e.strip() for e in self.EXTENSIONS_IGNORE.split(",") if e.strip()]


settings = Settings()
