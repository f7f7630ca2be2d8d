"""Configuration loading and validation for dockship deployments.

Main components:
- ConfigLoader: merge defaults, deploy.yaml, environment and CLI overrides
- Environment variable substitution (${VAR_NAME} pattern) and .env loading
- Default values and the environment variable map
"""

from dockship.config.env_loader import load_env_file, substitute_env_vars
from dockship.config.loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "substitute_env_vars",
    "load_env_file",
]
