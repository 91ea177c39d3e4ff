from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class _APISettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="AIRVISUAL_", extra="ignore")

    base_url: HttpUrl = Field(default="https://api.airvisual.com", validate_default=True)
    timeout: float = 10.0

    @property
    def url_str(self):
        return str(self.base_url).rstrip("/")

    @field_validator("timeout")
    @classmethod
    def check_timeout_value(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}.")

        return v


class _StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="STORAGE_", extra="ignore")

    dir: Path = Path(".airvisual")


class _AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="APP_", extra="ignore")

    config_path: Path = Path("config.yml")
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class Settings(BaseModel):
    api: _APISettings = Field(default_factory=_APISettings)
    storage: _StorageSettings = Field(default_factory=_StorageSettings)
    app: _AppSettings = Field(default_factory=_AppSettings)


settings = Settings()
