"""Read pipeline configuration from YAML and apply command-line overrides."""

from pathlib import Path
from typing import Any

import pydantic_yaml

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Parse and validate a YAML configuration file.

    Raises:
        FileNotFoundError: If the file is missing
        pydantic.ValidationError: If a value is missing or out of range
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return pydantic_yaml.parse_yaml_raw_as(PipelineConfig, config_path.read_text())


def _set_dotted(target: dict, dotted_key: str, value: Any) -> None:
    *parents, leaf = dotted_key.split(".")
    for part in parents:
        target = target[part]
    target[leaf] = value


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> PipelineConfig:
    """
    Load a config file, then replace individual values.

    Keys address nested fields with dots (``{"annotation.threshold": 0.9}``).
    A None value means "not given on the command line" and leaves the file
    value in place. The merged result is validated again, so an override
    cannot bypass the schema.
    """
    config_dict = load_config(config_path).model_dump()

    for key, value in overrides.items():
        if value is not None:
            _set_dotted(config_dict, key, value)

    return PipelineConfig.model_validate(config_dict)
