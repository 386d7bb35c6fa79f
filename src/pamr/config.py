"""
User configuration for PAMr.

Settings live in ~/.pamr/config.toml:

    [logging]
    enabled = true
    level = "DEBUG"
    max_size_mb = 10
    backup_count = 5

    [processing]
    sample_rate_policy = "use_mode"
    workers = 4

    [decoder]
    default = "json"

Unknown or invalid values fall back to their defaults with a warning.
"""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any

import tomli_w

from pydantic import BaseModel, Field, ValidationError

from pamr.constants import DEFAULT_CONFIG_DIR, DEFAULT_WORKERS

logger = logging.getLogger(__name__)

VALID_POLICIES = ("require_explicit", "use_mode", "use_provided")
CONFIG_FILE = "config.toml"


class ProcessingConfig(BaseModel):
    """The [processing] table."""

    sample_rate_policy: str = "require_explicit"
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)


def get_config_path() -> Path:
    """Path to the user config file."""
    return DEFAULT_CONFIG_DIR / CONFIG_FILE


def load_config() -> dict[str, Any]:
    """
    Read the user config file.

    Returns:
        Parsed TOML tables. An empty dict if the file is missing or cannot
        be parsed.
    """
    path = get_config_path()
    if not path.is_file():
        return {}

    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}


def save_config(config: dict[str, Any]) -> None:
    """
    Write the user config file.

    The file is written next to its final location and moved into place, so
    a failed write never leaves a truncated config behind.

    Raises:
        PermissionError: If the config directory cannot be created
    """
    path = get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(f"Cannot create config directory {path.parent}: {e}") from e

    staged = path.with_name(f".{CONFIG_FILE}.partial")
    try:
        staged.write_text(tomli_w.dumps(config), encoding="utf-8")
        os.replace(staged, path)
    finally:
        staged.unlink(missing_ok=True)


def _processing_config() -> ProcessingConfig:
    table = load_config().get("processing", {})
    try:
        return ProcessingConfig.model_validate(table)
    except ValidationError as e:
        logger.warning(f"Invalid [processing] config, using defaults: {e}")
        return ProcessingConfig()


def get_sample_rate_policy() -> str:
    """
    Configured policy for detections whose sample rate could not be found.

    Returns:
        One of "require_explicit", "use_mode" or "use_provided"
    """
    policy = _processing_config().sample_rate_policy
    if policy not in VALID_POLICIES:
        logger.warning(
            f"Unknown sample_rate_policy '{policy}' in config, using 'require_explicit'"
        )
        return "require_explicit"
    return policy


def set_sample_rate_policy(policy: str) -> None:
    """
    Store the sample rate policy in the user config.

    Raises:
        ValueError: If the policy name is not recognized
    """
    if policy not in VALID_POLICIES:
        raise ValueError(
            f"Invalid policy: '{policy}'. Valid policies are: {', '.join(VALID_POLICIES)}"
        )
    config = load_config()
    config.setdefault("processing", {})["sample_rate_policy"] = policy
    save_config(config)


def get_worker_count() -> int:
    """Configured number of binary files processed at once."""
    return _processing_config().workers


def get_default_decoder() -> str | None:
    """Configured decoder id, or None to pick decoders by file suffix."""
    decoder = load_config().get("decoder", {}).get("default")
    return str(decoder) if decoder else None
