import yaml
import os
from typing import Dict, Any

from retrykit.scheduling.policy import RetryPolicy


POLICIES_KEY = 'retry_policies'


class ConfigLoader:
    """
    Loads retry policies from YAML files of the form::

        retry_policies:
          dynamodb_read:
            max_attempts: 5
            base_delay: 0.2
            max_delay: 5
            jitter_fraction: 0.25
    """

    @staticmethod
    def load_config(config_file: str) -> Dict[str, Any]:
        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Config file not found: {config_file}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)

        if not config:
            return {}

        if not isinstance(config, dict):
            raise ValueError(f"Config file must contain a mapping at the top level: {config_file}")

        return config

    @staticmethod
    def load_policies(config_file: str) -> Dict[str, RetryPolicy]:
        config = ConfigLoader.load_config(config_file)
        section = config.get(POLICIES_KEY) or {}

        if not isinstance(section, dict):
            raise ValueError(f"'{POLICIES_KEY}' must be a mapping of policy names in {config_file}")

        policies = {}
        for name, values in section.items():
            try:
                policies[name] = RetryPolicy.from_dict(values)
            except ValueError as e:
                raise ValueError(f"Invalid retry policy '{name}' in {config_file}: {e}") from e
        return policies

    @staticmethod
    def load_policy(config_file: str, name: str) -> RetryPolicy:
        policies = ConfigLoader.load_policies(config_file)

        if name not in policies:
            available = ', '.join(sorted(policies)) or 'none'
            raise ValueError(
                f"Retry policy '{name}' not found in {config_file} (available: {available})"
            )

        return policies[name]
