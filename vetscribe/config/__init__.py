"""YAML configuration loader and immutable provider settings for VetScribe."""

import os
import yaml
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """Backend selected for transcription (and, except for LOCAL, analysis)."""
    GEMINI = "gemini"
    OPENAI = "openai"
    LOCAL = "local"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class GeminiSettings(_Frozen):
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com"


class OpenAISettings(_Frozen):
    api_key: str = ""
    model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    base_url: str = "https://api.openai.com/v1"


class LocalSettings(_Frozen):
    base_url: str = ""
    analysis_provider: ProviderKind = ProviderKind.GEMINI

    @field_validator("analysis_provider")
    @classmethod
    def _cloud_only(cls, value: ProviderKind) -> ProviderKind:
        if value is ProviderKind.LOCAL:
            raise ValueError("local transcription needs a cloud analysis provider (gemini or openai)")
        return value


class RetrySettings(_Frozen):
    max_attempts: int = Field(default=3, ge=1)
    initial_delay_ms: int = Field(default=2000, ge=0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)


class ProviderSettings(_Frozen):
    """Everything a pipeline run needs to reach its provider.

    Passed explicitly into provider resolution; never read from globals.
    """
    provider: ProviderKind = ProviderKind.GEMINI
    gemini: GeminiSettings = GeminiSettings()
    openai: OpenAISettings = OpenAISettings()
    local: LocalSettings = LocalSettings()
    retry: RetrySettings = RetrySettings()


class VetScribeConfig:
    """VetScribe configuration loader."""

    def __init__(self, config_path: Union[str, Path]):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file (e.g. vetscribe.yaml)
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (('storage', 'data_directory'),
                             ('storage', 'history_file'),
                             ('logging', 'file_path')):
            value = config.get(section, {}).get(key) if isinstance(config.get(section), dict) else None
            if value and not os.path.isabs(value):
                config[section][key] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'providers.gemini.model').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' updated")

    def provider_settings(self) -> ProviderSettings:
        """Snapshot the `providers` section as an immutable settings value."""
        section = dict(self.get('providers', {}) or {})
        return ProviderSettings.model_validate(section)

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())

    def get_history_path(self) -> str:
        """Get history file path (defaults to <data_directory>/history.json)."""
        history_file = self.get('storage.history_file')
        if history_file:
            return str(Path(history_file).absolute())
        return str(Path(self.get_data_directory()) / "history.json")

    def get_history_limit(self) -> int:
        return int(self.get('storage.history_limit', 50))


def load_settings(config_path: Optional[Union[str, Path]] = None) -> ProviderSettings:
    """Provider settings from a config file, or defaults when no file is given."""
    if config_path is None:
        return ProviderSettings()
    return VetScribeConfig(config_path).provider_settings()
