"""Configuration models and loading."""

import json
import os
import socket
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_DIR = Path.home() / ".config" / "hopfetch"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Set when the host forbids the transport from following redirects itself
SANDBOX_ENV_VAR = "HOPFETCH_SANDBOXED"


def default_user_agent() -> str:
    return f"hopfetch bot ({socket.gethostname()})"


class FetchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_agent: str = Field(default_factory=default_user_agent)
    max_redirects: int = Field(default=10, ge=0)
    connect_timeout_seconds: int = Field(default=30, gt=0)
    fetch_timeout_seconds: int = Field(default=30, gt=0)
    redirect_mode: Literal["auto", "native", "manual"] = "auto"

    @field_validator("user_agent")
    @classmethod
    def user_agent_is_ascii(cls, value: str) -> str:
        if not value.isascii():
            raise ValueError("user_agent must be ASCII")
        return value


class LogSettings(BaseModel):
    log_dir: Path = Field(default_factory=lambda: Path.cwd() / "logs")
    trace: bool = False


class Config(BaseModel):
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    logging: LogSettings = Field(default_factory=LogSettings)


def native_redirects_permitted(
    config: FetchConfig,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Decide whether the transport may follow redirects on its own."""
    if config.redirect_mode == "native":
        return True
    if config.redirect_mode == "manual":
        return False
    env = os.environ if environ is None else environ
    return env.get(SANDBOX_ENV_VAR, "").strip().lower() not in ("1", "true", "yes", "on")


def load_config(path: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        path.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(path.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = path.with_suffix(".json.bak")
        path.rename(backup)
        default = Config()
        path.write_text(default.model_dump_json(indent=2))
        return default
