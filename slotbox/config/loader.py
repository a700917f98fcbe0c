"""
Configuration loader for slotbox.

The global configuration lives in ~/.slotbox/config.yml (or under
$SLOTBOX_HOME) and is written with defaults the first time it is needed.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from slotbox.config.models import GlobalConfig
from slotbox.utils.errors import ConfigNotFoundError, InvalidConfigError
from slotbox.utils.hash import slotbox_home


def get_global_config_path() -> Path:
    """Get the path to the global config file."""
    return slotbox_home() / "config.yml"


def load_global_config(create_if_missing: bool = True) -> GlobalConfig:
    """
    Load global configuration from ~/.slotbox/config.yml.

    An empty file means all defaults.

    Args:
        create_if_missing: If True, write a default config when the file doesn't exist

    Returns:
        GlobalConfig instance

    Raises:
        ConfigNotFoundError: If config file doesn't exist and create_if_missing is False
        InvalidConfigError: If the file can't be parsed or fails validation
    """
    config_path = get_global_config_path()

    if not config_path.exists():
        if not create_if_missing:
            raise ConfigNotFoundError(
                message=f"Global configuration not found at {config_path}",
                suggestion="Run any slotbox command to create a default configuration",
            )
        config = GlobalConfig()
        save_global_config(config)
        return config

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigError(
            message=f"Failed to parse YAML in {config_path}: {e}",
            suggestion="Fix the syntax, or delete the file to regenerate defaults",
        ) from e
    except OSError as e:
        raise InvalidConfigError(
            message=f"Failed to read {config_path}: {e}",
            suggestion="Check file permissions",
        ) from e

    if not isinstance(data, dict):
        raise InvalidConfigError(
            message=f"Invalid configuration in {config_path}: expected a mapping at the top level",
            suggestion="See the defaults by deleting the file and running any slotbox command",
        )

    try:
        return GlobalConfig(**data)
    except ValidationError as e:
        raise InvalidConfigError(
            message=f"Invalid global configuration in {config_path}",
            suggestion=f"Fix the validation errors:\n{e}",
        ) from e


def save_global_config(config: GlobalConfig) -> None:
    """
    Save global configuration, creating the slotbox home if needed.

    Raises:
        InvalidConfigError: If the file can't be written
    """
    config_path = get_global_config_path()
    data = config.model_dump(mode="json", exclude_none=True)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
    except OSError as e:
        raise InvalidConfigError(
            message=f"Failed to write {config_path}: {e}",
            suggestion="Check that the slotbox home directory is writable",
        ) from e
