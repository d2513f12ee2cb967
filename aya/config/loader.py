"""Load and save the JSON config file.

Environment overrides (``AYA_*``) are applied by ``AyaConfig`` itself.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from aya.config.schema import AyaConfig


def get_config_path() -> Path:
    """Default config location (~/.aya/config.json)."""
    return Path.home() / ".aya" / "config.json"


def load_config(path: Path | None = None) -> AyaConfig:
    """Load config from ``path``; a missing file yields the defaults.

    Raises:
        pydantic.ValidationError: the file or the environment holds invalid values.
    """
    path = path or get_config_path()
    data: dict = {}
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Config {path} is not valid JSON: {e}")
            raise
    else:
        logger.info(f"No config at {path}, using defaults")

    return AyaConfig(**data)


def save_config(config: AyaConfig, path: Path | None = None) -> Path:
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    return path
