from pathlib import Path
from typing import Any

import yaml


def load_yaml(path_to_yaml: Path) -> dict[str, Any]:
    """
    Loads a YAML/YML file whose top level is a mapping.

    Uses yaml.safe_load, so untrusted files cannot execute code. An empty file
    yields an empty dict.

    Args:
        path_to_yaml (Path): The file path to the YAML/YML file to load.

    Returns:
        dict[str, Any]: The parsed top-level mapping.

    Raises:
        FileNotFoundError: If the specified file does not exist.
        yaml.YAMLError: If the file cannot be parsed or its top level is not a mapping.
    """
    try:
        with open(path_to_yaml, encoding="utf-8") as file:
            data = yaml.safe_load(file)
    except FileNotFoundError as e:
        raise FileNotFoundError(f"YAML file not found: {path_to_yaml}") from e
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML file: {path_to_yaml}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise yaml.YAMLError(f"Expected a mapping at the top of {path_to_yaml}, got {type(data).__name__}")

    return data
