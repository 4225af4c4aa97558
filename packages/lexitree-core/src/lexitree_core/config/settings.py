"""Runtime settings and environment loading utilities."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PATH = Path(".env")

DEFAULT_DATA_DIR = Path("~/.lexitree")
DEFAULT_TRANSLATOR_ENDPOINT = "https://api.cognitive.microsofttranslator.com"


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env files."""

    model_config = SettingsConfigDict(
        env_file=_ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Storage locations
    data_dir: Path = Field(default=DEFAULT_DATA_DIR, alias="LEXITREE_DATA_DIR")
    shared_db: Path | None = Field(default=None, alias="LEXITREE_SHARED_DB")

    # Logging
    log_level: str = Field(default="info", alias="LEXITREE_LOG_LEVEL")
    log_file: Path | None = Field(default=None, alias="LEXITREE_LOG_FILE")

    # Machine translation (optional)
    azure_translator_key: SecretStr | None = Field(
        default=None, alias="AZURE_TRANSLATOR_KEY"
    )
    azure_translator_endpoint: str = Field(
        default=DEFAULT_TRANSLATOR_ENDPOINT, alias="AZURE_TRANSLATOR_ENDPOINT"
    )
    azure_translator_region: str = Field(
        default="global", alias="AZURE_TRANSLATOR_REGION"
    )

    @property
    def resolved_data_dir(self) -> Path:
        """Data directory with ``~`` expanded."""
        return self.data_dir.expanduser()

    @property
    def resolved_shared_db(self) -> Path:
        """Shared store database path, defaulting under the data directory."""
        if self.shared_db is not None:
            return self.shared_db.expanduser()
        return self.resolved_data_dir / "shared.db"

    @property
    def translator_configured(self) -> bool:
        """Whether machine translation credentials are present."""
        return (
            self.azure_translator_key is not None
            and bool(self.azure_translator_key.get_secret_value())
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings loaded from the environment."""
    return Settings()
