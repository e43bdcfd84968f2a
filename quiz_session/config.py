from __future__ import annotations

from typing import Annotated

from pydantic import PositiveFloat, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .countdown import TimeoutMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUIZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    content_base_url: str = "http://127.0.0.1:8000/"
    # Empty means the first entry of ``languages``.
    language: str = ""
    languages: Annotated[tuple[str, ...], NoDecode] = ("en", "da")
    difficulty: str = "normal"
    round_time_s: PositiveFloat = 60.0
    http_timeout_s: PositiveFloat = 5.0
    timeout_mode: TimeoutMode = TimeoutMode.ONCE
    log_level: str = "INFO"

    @field_validator("languages", mode="before")
    @classmethod
    def _split_languages(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            value = tuple(str(part).strip() for part in value if str(part).strip())
            if not value:
                raise ValueError("languages must name at least one language")
        return value

    @field_validator("timeout_mode", mode="before")
    @classmethod
    def _lower_mode(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("content_base_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        value = value.strip()
        return value if value.endswith("/") else value + "/"

    @model_validator(mode="after")
    def _initial_language(self) -> "Settings":
        language = self.language.strip() or self.languages[0]
        if language not in self.languages:
            self.languages = (language, *self.languages)
        self.language = language
        return self

    @property
    def initial_menu_index(self) -> int:
        return self.languages.index(self.language)


def load_settings() -> Settings:
    """Read ``QUIZ_*`` environment variables (and ``.env``) over the defaults."""
    return Settings()
