import os
from pathlib import Path
from string import Template
from typing import Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ghinbox.models.config import AppConfig

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/ghinbox.yaml"


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads the inbox configuration from YAML with ${VAR} substitution"""

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        load_env: bool = True,
    ):
        self.config_path = Path(config_path)
        self.env_loaded = not load_env
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load and validate configuration"""
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            raw_content = self.config_path.read_text()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars; unknown ${VAR} placeholders are left as-is
        try:
            substituted = Template(raw_content).safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        # 5. Validate with Pydantic
        try:
            self._config = AppConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            api_base=self._config.github.api_base,
            token_configured=self._config.github.token is not None,
        )
        return self._config
