from __future__ import annotations
from dotenv import load_dotenv, find_dotenv; load_dotenv(find_dotenv(usecwd=True), override=True)

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import TimeTokenMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # General
    TZ: str = Field(default="Europe/Sarajevo", description="Local zone for 'today'/'yesterday' checks")

    # App usage parsers
    TIME_TOKEN_MODE: TimeTokenMode = Field(
        default=TimeTokenMode.COMPOUND_OR_CLOCK,
        description="compound (1h 2m only) or compound_or_clock (also H:MM[:SS])",
    )

    # Health datasets
    SKIP_NAPS: bool = Field(default=True, description="Drop nap sleeps from the Sleep dataset")


def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
