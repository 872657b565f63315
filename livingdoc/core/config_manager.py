"""Configuration management"""
import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from livingdoc.core.exceptions import ConfigurationError
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'project': {
        'title': 'Living Documentation',
    },
    'parser': {
        'language': 'en',
        'parallel': 4,
        'use_processes': False,
        'fail_fast': False,
        'pattern': '**/*.feature',
    },
    'results': {
        'patterns': ['**/*.xml', '**/*.trx', '**/*.json'],
    },
    'correlation': {
        'index_threshold': 5,
        'min_partial_length': 5,
        'allow_partial_match': True,
        'global_scenario_fallback': True,
        'cache_size': 4096,
    },
    'logging': {
        'level': 'INFO',
        'colored': True,
    },
}


class ConfigManager:
    """Manages configuration loading and merging"""

    def __init__(self, config_path: str = 'config/config.yaml', environment: Optional[str] = None,
                 env_file: Optional[str] = None):
        self.config_path = Path(config_path)
        self.environment = environment
        self.env_file = env_file
        self.config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

    def load_config(self) -> Dict[str, Any]:
        """Load defaults, the main config file and the environment overlay"""
        if self.env_file:
            load_dotenv(self.env_file, override=False)
        else:
            load_dotenv(override=False)

        if self.config_path.exists():
            self.config = self._merge_configs(self.config, self._read_yaml(self.config_path))
        else:
            logger.warning(f"Config file not found, using defaults: {self.config_path}")

        if self.environment:
            env_config_path = self.config_path.parent / 'environments' / f'{self.environment}.yaml'
            if env_config_path.exists():
                env_config = self._read_yaml(env_config_path)

                if 'overrides' in env_config:
                    overrides = env_config.pop('overrides')
                    self._apply_overrides(self.config, overrides)

                self.config = self._merge_configs(self.config, env_config)
            else:
                logger.warning(f"Environment config not found: {env_config_path}")

        self.config = self._process_env_vars(self.config)

        logger.debug(f"Configuration loaded (environment: {self.environment or 'default'})")
        return self.config

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed YAML in {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        return data

    def _merge_configs(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_overrides(self, base: Dict, overrides: Dict) -> None:
        """Apply overrides from environment config to base config"""
        for section, values in overrides.items():
            if section in base and isinstance(values, dict) and isinstance(base[section], dict):
                for key, value in values.items():
                    base[section][key] = value
            else:
                base[section] = values

    def _process_env_vars(self, config: Any) -> Any:
        """Replace ${VAR} with environment variables"""
        if isinstance(config, dict):
            return {k: self._process_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._process_env_vars(item) for item in config]
        elif isinstance(config, str) and config.startswith('${') and config.endswith('}'):
            var_name = config[2:-1]
            return os.environ.get(var_name, config)
        else:
            return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)"""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value
