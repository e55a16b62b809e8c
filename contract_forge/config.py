import logging
import sys
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        protected_namespaces=(),
    )

    solc_version: str = Field(default="0.8.20", description="solc release used for every compilation.")
    evm_version: str = Field(default="shanghai", description="Target EVM version.")
    optimizer_enabled: bool = True
    optimizer_runs: int = Field(default=200, ge=0)
    # Directory holding a node_modules-style tree (<root>/@openzeppelin/contracts).
    # Unset means the OpenZeppelin sources shipped with the package.
    library_root: Optional[str] = Field(default=None, alias="OPENZEPPELIN_PATH")
    strict_contract_match: bool = False
    compile_timeout: Optional[float] = Field(default=60.0, description="Seconds allowed per compilation.")
    google_api_key: Optional[str] = None
    model: str = Field(default="gemini-2.0-flash", alias="CONTRACT_MODEL")
    model_timeout: Optional[float] = 30.0
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("google_api_key", "library_root")
    @classmethod
    def blank_as_unset(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def model_available(self) -> bool:
        return bool(self.google_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Route all pipeline loggers to stdout with a timestamped format."""
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
