"""YAML configuration loader for doubletrace.yaml.

Key functions:
- load_config: Load and validate doubletrace.yaml from a directory
- _parse_yaml: Parse YAML content with error handling
- _validate_schema: Reject unknown fields and wrong types
- _build_config: Convert the parsed dict to a DoubleConfig
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import yaml

from doubletrace.config import (
    ConfigError,
    ConfigurationError,
    DoubleConfig,
    VerificationMode,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "doubletrace.yaml"


class ConfigMissingError(ConfigError):
    """Raised when doubletrace.yaml is required but not found.

    Example:
        >>> raise ConfigMissingError(Path("/path/to/repo"))
        ConfigMissingError: doubletrace.yaml not found in /path/to/repo.
    """

    root: Path

    def __init__(self, root: Path) -> None:
        self.root = root
        super().__init__(f"{CONFIG_FILENAME} not found in {root}.")


# Fields allowed at the top level of doubletrace.yaml
_ALLOWED_TOP_LEVEL_FIELDS = frozenset(
    {
        "verify_partial_doubles",
        "allow_message_expectations_on_nil",
        "verification_mode",
    }
)


def load_config(root: Path, *, required: bool = False) -> DoubleConfig:
    """Load doubletrace.yaml from ``root``.

    Args:
        root: Directory holding the configuration file.
        required: Raise ConfigMissingError instead of returning defaults when
            the file does not exist.

    Returns:
        DoubleConfig built from the file, or the defaults.

    Raises:
        ConfigError: If the file is unreadable, has invalid YAML syntax,
            contains unknown fields, or has invalid values.
    """
    config_file = root / CONFIG_FILENAME

    if not config_file.exists():
        if required:
            raise ConfigMissingError(root)
        logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, root)
        return DoubleConfig()

    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Failed to decode {config_file}: {e}") from e
    data = _parse_yaml(content)
    _validate_schema(data)
    config = _build_config(data)
    errors = config.validate()
    if errors:
        raise ConfigurationError(errors)
    logger.debug("Loaded %s: %s", config_file, config)
    return config


def _parse_yaml(content: str) -> dict[str, Any]:
    """Parse YAML content into a dictionary.

    Returns an empty dict for an empty file or one holding only comments.

    Raises:
        ConfigError: If YAML syntax is invalid or the document is not a mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {CONFIG_FILENAME}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(
            f"{CONFIG_FILENAME} must be a YAML mapping, got {type(data).__name__}"
        )

    return data


def _validate_schema(data: dict[str, Any]) -> None:
    unknown = set(data) - _ALLOWED_TOP_LEVEL_FIELDS
    if unknown:
        first = sorted(unknown)[0]
        raise ConfigError(f"Unknown field '{first}' in {CONFIG_FILENAME}")

    value = data.get("verify_partial_doubles", False)
    if not isinstance(value, bool):
        raise ConfigError(
            f"verify_partial_doubles must be a boolean, got {type(value).__name__}"
        )

    value = data.get("allow_message_expectations_on_nil")
    if value is not None and not isinstance(value, bool):
        raise ConfigError(
            "allow_message_expectations_on_nil must be a boolean or null, "
            f"got {type(value).__name__}"
        )

    value = data.get("verification_mode", VerificationMode.AGGREGATE.value)
    valid = sorted(m.value for m in VerificationMode)
    if value not in valid:
        raise ConfigError(
            f"Invalid verification_mode '{value}'. Valid values: {', '.join(valid)}"
        )


def _build_config(data: dict[str, Any]) -> DoubleConfig:
    return DoubleConfig(
        verify_partial_doubles=data.get("verify_partial_doubles", False),
        allow_message_expectations_on_nil=data.get("allow_message_expectations_on_nil"),
        verification_mode=VerificationMode(
            data.get("verification_mode", VerificationMode.AGGREGATE.value)
        ),
    )
