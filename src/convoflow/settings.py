from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import ConfigError, find_config_path, read_config
from .constants import DEFAULT_API_BASE_URL, DEFAULT_APP

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

ResetPolicy = Literal["enter", "hold"]


class TelegramSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    bot_token: NonEmptyStr
    api_base_url: NonEmptyStr = DEFAULT_API_BASE_URL
    request_timeout_s: float = Field(default=60.0, gt=0)

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class PollingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    limit: int = Field(default=100, ge=1, le=100)
    timeout_s: int = Field(default=30, ge=0)
    backoff_s: float = Field(default=5.0, ge=0)
    allowed_updates: list[NonEmptyStr] | None = None
    drop_pending_updates: bool = False


class ConversationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    reset_policy: ResetPolicy = "enter"


class ConvoflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="CONVOFLOW__",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        str_strip_whitespace=True,
    )

    app: NonEmptyStr = DEFAULT_APP
    telegram: TelegramSettings
    polling: PollingSettings = Field(default_factory=PollingSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def client_timeout_s(self) -> float:
        # the HTTP timeout has to outlive the long poll itself
        return max(self.telegram.request_timeout_s, self.polling.timeout_s + 10.0)


def load_settings(
    path: str | Path | None = None,
) -> tuple[ConvoflowSettings, Path | None]:
    """Load settings from TOML, environment and ``.env``.

    An explicit ``path`` must exist. Without one, the usual config locations
    are searched and, when none exists, settings come from the environment
    alone.
    """
    cfg_path = find_config_path(path)
    if cfg_path is not None:
        # surfaces missing files and malformed TOML as ConfigError
        read_config(cfg_path)
    return _load_settings_from_path(cfg_path), cfg_path


def _load_settings_from_path(cfg_path: Path | None) -> ConvoflowSettings:
    cfg = dict(ConvoflowSettings.model_config)
    if cfg_path is not None:
        cfg["toml_file"] = cfg_path
    Bound = type(
        "ConvoflowSettingsBound",
        (ConvoflowSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    where = str(cfg_path) if cfg_path is not None else "environment"
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {where}: {exc}") from exc
