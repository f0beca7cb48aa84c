"""Bridge configuration loader and models"""
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing import Dict, Literal, Optional
from pathlib import Path
import os
import yaml
import logging

from .errors import ConfigError

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CLAUDE_BRIDGE_LOG_LEVEL"


class LoggingConfig(BaseModel):
    """Diagnostic logging configuration"""
    level: str = "INFO"
    format: Literal["json", "console"] = "json"


class BridgeConfig(BaseModel):
    """Complete bridge configuration"""
    model_config = ConfigDict(extra="forbid")

    executable: str = "claude"
    default_cwd: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)
    stream_limit: int = Field(default=10 * 1024 * 1024, gt=0)  # 10MB, asyncio default is 64KB
    queue_maxsize: int = Field(default=0, ge=0)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[Path] = None) -> BridgeConfig:
    """
    Load configuration from an optional YAML file.

    Args:
        config_path: Path to YAML file, None for built-in defaults

    Returns:
        Validated configuration with environment overrides applied

    Raises:
        ConfigError: file unreadable or content invalid
    """
    data: dict = {}

    if config_path is not None:
        logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {config_path} must be a mapping")

    try:
        config = BridgeConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}") from e

    level = os.environ.get(LOG_LEVEL_ENV)
    if level:
        config.logging.level = level.upper()

    return config
