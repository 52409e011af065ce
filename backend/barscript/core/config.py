from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env files."""

    app_name: str = "BarScript API"
    environment: str = "dev"
    debug: bool = True
    version: str = "0.1.0"
    log_level: str = "INFO"
    scripts_dir: str = "./scripts"
    script_extension: str = ".bs"
    candle_capacity: int = 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BS_",
        extra="ignore",
    )

    @field_validator("candle_capacity")
    @classmethod
    def _capacity_is_power_of_two(cls, value: int) -> int:
        if value <= 0 or value & (value - 1):
            raise ValueError("candle_capacity must be a power of two")
        return value

    @field_validator("script_extension")
    @classmethod
    def _extension_has_dot(cls, value: str) -> str:
        value = value.strip()
        return value if value.startswith(".") else f".{value}"

    def dict_for_logging(self) -> dict[str, Any]:
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "debug": self.debug,
            "version": self.version,
            "scripts_dir": self.scripts_dir,
        }


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
