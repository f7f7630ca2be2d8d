"""Environment variable handling for dockship configuration.

Supports ``${VAR_NAME}`` substitution in deploy.yaml and loading variables
from a ``.env`` file.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

from dockship.lib.errors import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env_vars(text: str, env: Mapping[str, str] | None = None) -> str:
    """Replace ``${VAR_NAME}`` references with environment values.

    Args:
        text: Raw text containing references
        env: Mapping to resolve from (defaults to os.environ)

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is not set
    """
    source = os.environ if env is None else env

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in source:
            raise ConfigError(
                field=name,
                message=f"Environment variable '{name}' is referenced but not set",
            )
        return source[name]

    return ENV_VAR_PATTERN.sub(_replace, text)


def load_env_file(path: str | Path | None = None) -> bool:
    """Load variables from a .env file without overriding existing ones.

    Returns:
        True if a file was found and loaded
    """
    env_path = Path(path) if path else Path.cwd() / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)
