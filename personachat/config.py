"""
Config loader for personachat.
Reads config.yaml once at startup. All other modules import from here.
${ENV_VAR} references anywhere in the file are resolved from the environment
(.env is loaded first).
"""

import logging
import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"
_config: dict | None = None


_ENV_REF = re.compile(r"\$\{(\w+)\}")


def _expand(node):
    """Substitute ${NAME} in every string leaf; unset names expand to an empty string."""
    if isinstance(node, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), node)
    if isinstance(node, dict):
        return {key: _expand(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


def _default_path() -> Path:
    override = os.environ.get("PERSONACHAT_CONFIG")
    return Path(override) if override else _CONFIG_PATH


def load_config(path: Path | None = None) -> dict:
    """
    Load and cache config from YAML file.
    A missing file is not an error: every consumer has inline defaults.
    """
    global _config
    if _config is not None:
        return _config

    config_path = Path(path) if path else _default_path()
    if not config_path.exists():
        logger.warning("Config not found at %s, using defaults", config_path)
        _config = {}
        return _config

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = _expand(raw)
    return _config


def get_config() -> dict:
    """Return cached config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config():
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None
