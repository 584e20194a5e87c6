"""Handles loading configuration from YAML files."""

import yaml
import os
import logging
from typing import Optional
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    'whisper_model': 'base',
    'whisper_language': None,   # None lets Whisper detect the language
    'device': 'cuda',
    'whisper_fp16': True,
    'ffmpeg_path': None,
    'temp_dir': 'temp',
    'log_dir': 'logs',
    'log_file': 'lyricsync.log',
    'output_format': 'srt',
    'history_limit': None,
    'draft_path': 'lyricsync_draft.json',
}

class ConfigLoader:
    """Loads configuration settings from a YAML file on top of built-in defaults."""

    def load_config(self, config_path: Optional[str] = None, required: bool = False) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Keys missing from the file keep their value from DEFAULT_CONFIG.

        Args:
            config_path: The path to the YAML configuration file, or None for defaults only.
            required: If True, a missing file is an error; otherwise the
                      defaults are returned.

        Returns:
            A dictionary containing the merged configuration settings.

        Raises:
            FileNotFoundError: If the file does not exist and `required` is set.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        config = dict(DEFAULT_CONFIG)
        if not config_path:
            return config

        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            if required:
                logger.error(f"Configuration file not found at path: {config_path}")
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            logger.info(f"No configuration file at {config_path}, using defaults")
            return config
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            logger.warning(f"Configuration file {config_path} is empty, using defaults")
            return config
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        config.update(loaded)
        self._validate(config, config_path)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    def _validate(self, config: dict, config_path: str) -> None:
        limit = config.get('history_limit')
        if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 1):
            raise ConfigurationError(f"'history_limit' in {config_path} must be a positive integer or null, got {limit!r}")
        if str(config.get('output_format', '')).lower() not in ('srt', 'vtt', 'lrc'):
            raise ConfigurationError(f"Unsupported output format '{config.get('output_format')}' specified in {config_path}.")
