"""Configuration loader for dockship deployments.

Merges, in increasing precedence: built-in defaults, an optional YAML file
(with ``${VAR}`` substitution), ``DOCKSHIP_*`` environment variables and CLI
overrides. Parameters still missing afterwards are prompted for, unless the
run is non-interactive, in which case loading fails fast.
"""

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError as PydanticValidationError

from dockship.config.defaults import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DEPLOYMENT_CONFIG,
    DEFAULT_SSH_KEY,
    ENV_VAR_MAP,
    PROMPT_DEFAULTS,
    REQUIRED_PARAMETERS,
    SECRET_PARAMETERS,
)
from dockship.config.env_loader import substitute_env_vars
from dockship.config.validator import flatten_pydantic_errors
from dockship.lib.errors import ConfigError
from dockship.models.deployment import DeploymentConfig

logger = logging.getLogger(__name__)

PromptFunc = Callable[..., Any]


def _is_unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _read_yaml_with_env_substitution(
    path: Path, env: Mapping[str, str]
) -> dict[str, Any]:
    """Read a YAML mapping, substituting environment references first.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(field="config", message=f"Cannot read {path}: {exc}") from exc

    substituted = substitute_env_vars(raw_text, env)
    try:
        content = yaml.safe_load(substituted)
    except yaml.YAMLError as exc:
        raise ConfigError(
            field="config", message=f"Invalid YAML in {path}: {exc}"
        ) from exc

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(
            field="config",
            message=f"{path} must contain a mapping of configuration keys",
        )
    # Allow the settings to be nested under a top-level "deployment" key
    if set(content) == {"deployment"} and isinstance(content["deployment"], dict):
        content = content["deployment"]
    return dict(content)


class ConfigLoader:
    """Build a validated DeploymentConfig from files, environment and prompts.

    Example:
        >>> loader = ConfigLoader(interactive=False)
        >>> config = loader.load(overrides={"host": "203.0.113.10", ...})
    """

    def __init__(
        self,
        interactive: bool = True,
        env: Mapping[str, str] | None = None,
        prompt: PromptFunc | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            interactive: Prompt for missing parameters instead of failing
            env: Environment mapping (defaults to os.environ)
            prompt: Prompt function (defaults to click.prompt)
        """
        self.interactive = interactive
        self.env: Mapping[str, str] = os.environ if env is None else env
        self.prompt: PromptFunc = prompt or click.prompt

    def load(
        self,
        config_path: str | Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> DeploymentConfig:
        """Load and validate the deployment configuration.

        Args:
            config_path: Explicit YAML file; when None, ``deploy.yaml`` in the
                current directory is used if present
            overrides: Values from the command line (None values are ignored)

        Returns:
            Immutable DeploymentConfig

        Raises:
            ConfigError: On unreadable files, missing parameters in
                non-interactive mode, or validation failures
        """
        data: dict[str, Any] = dict(DEFAULT_DEPLOYMENT_CONFIG)

        file_data = self._load_file(config_path)
        data.update(file_data)
        data.update(self._load_env())
        if overrides:
            data.update({k: v for k, v in overrides.items() if not _is_unset(v)})

        self._fill_missing(data)

        if isinstance(data.get("ssh_key_path"), str):
            data["ssh_key_path"] = os.path.expanduser(data["ssh_key_path"])

        try:
            config = DeploymentConfig.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigError(
                field="deployment",
                message="\n".join(flatten_pydantic_errors(exc)),
            ) from exc

        logger.debug(f"Loaded deployment configuration: {config.summary()}")
        return config

    def _load_file(self, config_path: str | Path | None) -> dict[str, Any]:
        if config_path is None:
            default = Path.cwd() / DEFAULT_CONFIG_FILE
            if not default.is_file():
                return {}
            path = default
        else:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigError(
                    field="config", message=f"Configuration file not found: {path}"
                )
        logger.debug(f"Reading configuration file {path}")
        return _read_yaml_with_env_substitution(path, self.env)

    def _load_env(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for field_name, env_var in ENV_VAR_MAP.items():
            value = self.env.get(env_var)
            if not _is_unset(value):
                values[field_name] = value  # type: ignore[assignment]
        return values

    def _fill_missing(self, data: dict[str, Any]) -> None:
        """Prompt for, or fail on, required parameters that are unset."""
        missing = [name for name in REQUIRED_PARAMETERS if _is_unset(data.get(name))]

        if not self.interactive:
            # Parameters with a suggested answer fall back to the model default
            required = [name for name in missing if name not in PROMPT_DEFAULTS]
            if required:
                names = ", ".join(required)
                raise ConfigError(
                    field=required[0],
                    message=(
                        f"Non-interactive mode and required parameter(s) not set: "
                        f"{names}. Provide them in {DEFAULT_CONFIG_FILE}, as "
                        f"{', '.join(ENV_VAR_MAP[n] for n in required)} or as options."
                    ),
                )
            for name in missing:
                data.pop(name, None)
            return

        for name in missing:
            kwargs: dict[str, Any] = {}
            if name in PROMPT_DEFAULTS:
                kwargs["default"] = PROMPT_DEFAULTS[name]
            elif name == "ssh_key_path":
                kwargs["default"] = DEFAULT_SSH_KEY
            if name == "app_port":
                kwargs["type"] = int
            data[name] = self.prompt(REQUIRED_PARAMETERS[name], **kwargs)

        for name, text in SECRET_PARAMETERS.items():
            if _is_unset(data.get(name)) and str(
                data.get("repository_url", "")
            ).startswith("https://"):
                data[name] = self.prompt(
                    text, default="", hide_input=True, show_default=False
                )
