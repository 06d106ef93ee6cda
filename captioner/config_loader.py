"""Handles loading configuration from YAML files and validating it."""

import yaml
import os
import logging
from typing import Optional
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'chunk_seconds': 600,
    'translate_batch_size': 60,
    'transcription_model': 'whisper-1',
    'translation_model': 'gpt-4o-mini',
    'source_language': 'ja',
    'target_language': 'zh-TW',
    'bilingual': True,
    'burn_in': True,
    'font_dir': './fonts',
    'font_name': 'Noto Sans CJK TC',
    'font_size': None,
    'max_attempts': 5,
    'retry_initial_delay': 1.0,
    'retry_max_delay': 30.0,
    'retry_jitter': 1.0,
    'transcription_workers': 2,
    'translation_workers': 4,
    'single_line_fallback': True,
    'fallback_marker': '[untranslated]',
    'openai_api_key': None,
    'api_base_url': None,
    'request_timeout': 120.0,
    'temp_dir': None,
    'ffmpeg_path': None,
    'show_progress': True,
    'log_dir': 'logs',
    'log_file': 'captioner.log',
}

_POSITIVE_NUMBERS = ('chunk_seconds', 'request_timeout')
_POSITIVE_INTEGERS = ('translate_batch_size', 'max_attempts', 'transcription_workers', 'translation_workers')
_NON_NEGATIVE_NUMBERS = ('retry_initial_delay', 'retry_max_delay', 'retry_jitter')

class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
            logger.error(f"Configuration path is not a file: {config_path}")
            raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if config is None:
            # An empty file means "all defaults".
            config = {}
        if not isinstance(config, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        unknown = sorted(set(config) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

def build_config(file_config: Optional[dict] = None, overrides: Optional[dict] = None) -> dict:
    """
    Merges defaults, file settings and overrides (in that order of precedence).

    Override values of None are ignored so unset CLI flags don't mask the file.
    """
    config = dict(DEFAULT_CONFIG)
    config.update({k: v for k, v in (file_config or {}).items() if k in DEFAULT_CONFIG})
    for key, value in (overrides or {}).items():
        if value is not None:
            logger.info(f"Overriding '{key}' with command-line value: {value}")
            config[key] = value
    return validate_config(config)

def validate_config(config: dict) -> dict:
    """
    Checks value ranges of the pipeline settings.

    Raises:
        ConfigurationError: For any out-of-range or mistyped value.
    """
    for key in _POSITIVE_NUMBERS + _POSITIVE_INTEGERS + _NON_NEGATIVE_NUMBERS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"'{key}' must be a number, got {value!r}")
        if key in _NON_NEGATIVE_NUMBERS:
            if value < 0:
                raise ConfigurationError(f"'{key}' must not be negative, got {value}")
        elif value <= 0:
            raise ConfigurationError(f"'{key}' must be positive, got {value}")
        if key in _POSITIVE_INTEGERS and int(value) != value:
            raise ConfigurationError(f"'{key}' must be a whole number, got {value}")

    font_size = config.get('font_size')
    if font_size is not None and (isinstance(font_size, bool) or not isinstance(font_size, int) or font_size <= 0):
        raise ConfigurationError(f"'font_size' must be a positive integer, got {font_size!r}")
    marker = config.get('fallback_marker')
    if marker is not None and not isinstance(marker, str):
        raise ConfigurationError(f"'fallback_marker' must be text, got {marker!r}")
    for key in ('source_language', 'target_language', 'transcription_model', 'translation_model'):
        if not config.get(key):
            raise ConfigurationError(f"'{key}' must be set.")
    return config
