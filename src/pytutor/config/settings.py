"""Configuration model for PyTutor."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ExecutionMode(str, Enum):
    AUTO = "auto"
    SUBPROCESS = "subprocess"
    DRY_RUN = "dry_run"


class GeneratorBackend(str, Enum):
    SCRIPTED = "scripted"
    CLAUDE = "claude"


class ClaudeConfig(BaseModel):
    api_key: Optional[str] = Field(default=None)
    model: str = "claude-sonnet-4-6"
    max_tokens: int = 1024

    def get_api_key(self) -> Optional[str]:
        return self.api_key or os.environ.get("ANTHROPIC_API_KEY")

    def get_model(self) -> str:
        return os.environ.get("PYTUTOR_CLAUDE_MODEL") or self.model


class Settings(BaseModel):
    execution_mode: ExecutionMode = ExecutionMode.AUTO
    generator: GeneratorBackend = GeneratorBackend.SCRIPTED
    claude: ClaudeConfig = Field(default_factory=ClaudeConfig)
    timeout_seconds: int = 10
    history_window: int = Field(default=10, ge=1)
    data_dir: Path = Path.home() / ".pytutor"
    courses_dir: Optional[Path] = None
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or Path.home() / ".pytutor" / "config.yaml"
        data: dict = {}
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        settings = cls(**data)
        env_level = os.environ.get("PYTUTOR_LOG_LEVEL")
        if env_level:
            settings.log_level = env_level.upper()
        return settings

    def save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)
