"""YAML configuration loading.

Used by [SocialGraph.from_yaml()][wotgraph.graph.engine.SocialGraph.from_yaml]
and [BaseService.from_yaml()][wotgraph.core.base_service.BaseService.from_yaml].
Only ``yaml.safe_load`` is used, so YAML tags cannot instantiate Python
objects.

Examples:
    ```python
    from wotgraph.core.yaml import load_yaml

    config = load_yaml("config/services/api.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML mapping.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        The parsed mapping; an empty dict for an empty file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the YAML is invalid or its top level is not
            a mapping.

    Warning:
        The structure of the result is not validated here. Pass it to the
        relevant Pydantic model (e.g.
        [SocialGraphConfig][wotgraph.graph.configs.SocialGraphConfig]).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config root must be a mapping in {config_path}, got {type(data).__name__}"
        )
    return data
