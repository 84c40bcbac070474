"""
Configuration system: reads switchyard.json + .env
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt
from pydantic_settings import BaseSettings


# ── JSON schema models ───────────────────────────────────────────────────────

class ProviderConfig(BaseModel):
    """An extra OpenAI- or Anthropic-compatible endpoint served by the generic adapter."""
    name: str
    display_name: Optional[str] = None
    base_url: Optional[str] = None
    api_format: Optional[str] = None  # "chat-completions" | "responses" | "anthropic-messages"


class BridgeConfig(BaseModel):
    base_url: str = "http://localhost:3001"
    timeout_seconds: float = 60.0


class WebToolConfig(BaseModel):
    fetch_timeout_seconds: float = 15.0
    max_fetch_length: int = 50_000
    max_search_results: int = 10


class ToolsConfig(BaseModel):
    enabled: bool = True
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    web: WebToolConfig = Field(default_factory=WebToolConfig)


class AgentConfig(BaseModel):
    max_rounds: PositiveInt = 50
    validation_timeout_seconds: float = 10.0


class SwitchyardConfig(BaseModel):
    providers: list[ProviderConfig] = Field(default_factory=list)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)


# ── App settings (from .env) ─────────────────────────────────────────────────

class AppSettings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8000
    config_path: str = "./switchyard.json"
    log_level: str = "INFO"

    model_config = {"env_prefix": "SWITCHYARD_", "env_file": ".env", "extra": "ignore"}


# ── Singleton loaders ─────────────────────────────────────────────────────────

_config: Optional[SwitchyardConfig] = None
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def load_config(path: Optional[str] = None) -> SwitchyardConfig:
    global _config
    settings = get_settings()
    config_file = Path(path or settings.config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
        _config = SwitchyardConfig(**data)
    else:
        _config = SwitchyardConfig()

    return _config


def get_config() -> SwitchyardConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config
