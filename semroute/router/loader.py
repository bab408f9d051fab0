"""Route definitions loaded from YAML files.

Expected layout::

    routes:
      - name: politics
        description: Political opinions and news
        threshold: 0.8
        utterances:
          - isn't politics the best thing ever
          - they will save the country!
      - name: chitchat
        utterances:
          - how's the weather today?
"""

from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from semroute.contracts import Route
from semroute.errors import InvalidConfiguration
from semroute.router.route_builder import RouterBuilder


def _route_from_entry(entry: Any, file_path: Path) -> Route:
    if not isinstance(entry, dict):
        raise InvalidConfiguration(f"Route entries in {file_path} must be mappings, got {type(entry).__name__}")

    return (
        RouterBuilder(str(entry.get("name") or ""))
        .utterances(entry.get("utterances") or [])
        .embedding(entry.get("embeddings"))
        .threshold(entry.get("threshold"))
        .description(entry.get("description"))
        .metadata(entry.get("metadata"))
        .build()
    )


def load_routes(path: str | Path) -> list[Route]:
    """
    Load route definitions from a YAML file.

    Args:
        path: Path to a .yaml/.yml file with a top-level ``routes`` list.

    Returns:
        Routes in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        InvalidConfiguration: If the file or one of its routes is invalid.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Routes file not found: {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Invalid YAML in routes file {file_path}: {e}") from e

    entries = data.get("routes") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise InvalidConfiguration(f"Routes file {file_path} must contain a 'routes' list")

    routes = [_route_from_entry(entry, file_path) for entry in entries]
    logger.debug(f"Loaded {len(routes)} routes from {file_path}")
    return routes
