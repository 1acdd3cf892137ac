"""Reading seed specs from JSON and YAML files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from seedgraph.core.exceptions import SeedSpecError

SUPPORTED_SUFFIXES = (".json", ".yaml", ".yml")


def load_seed_spec(path: str | Path) -> dict[str, Any]:
    """Load a seed spec file, keeping the declared key order.

    Args:
        path: Path to a ``.json``, ``.yaml`` or ``.yml`` file.

    Returns:
        The parsed seed spec.

    Raises:
        SeedSpecError: If the file is missing, has an unsupported suffix,
            cannot be parsed, or does not hold a mapping.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SeedSpecError(
            f"Unsupported seed file type '{path.suffix}'",
            details={"path": str(path), "supported": list(SUPPORTED_SUFFIXES)},
        )

    try:
        text = path.read_text("utf-8")
    except OSError as e:
        raise SeedSpecError(f"Cannot read seed file: {e}", details={"path": str(path)}) from e

    try:
        data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SeedSpecError(f"Cannot parse seed file: {e}", details={"path": str(path)}) from e

    if not isinstance(data, dict):
        raise SeedSpecError(
            "Seed file must contain a mapping of groups",
            details={"path": str(path), "type": type(data).__name__},
        )

    return data
