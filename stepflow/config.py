"""
Configuration management for StepFlow.

Handles persistent configuration including:
- Layout tuning (card size, spacing, margins) under the "layout" key
- Other user preferences

Config is stored in config.json next to the executable/project root.
"""

import json
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from stepflow.paths import get_config_path

logger = logging.getLogger(__name__)

# Settings that must be strictly positive; the rest only non-negative
POSITIVE_SETTINGS = ("card_width", "card_height")


@dataclass(frozen=True)
class LayoutSettings:
    """Card geometry and spacing used by auto layout and drag clamping."""
    card_width: float = 192.0
    card_height: float = 76.0
    h_spacing: float = 60.0
    v_spacing: float = 20.0
    margin: float = 10.0
    padding: float = 20.0


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def get_layout_settings(config: Dict[str, Any] = None) -> LayoutSettings:
    """
    Build LayoutSettings from the "layout" section of the config.

    Unknown keys and invalid values are ignored with a warning; missing keys
    keep their defaults. Card sizes must be positive, spacings and margins
    may be zero.
    """
    if config is None:
        config = load_config()
    section = config.get("layout") or {}
    if not isinstance(section, dict):
        logger.warning("Config 'layout' section is not an object; using defaults")
        return LayoutSettings()

    known = {f.name for f in fields(LayoutSettings)}
    overrides = {}
    for key, value in section.items():
        if key not in known:
            logger.warning(f"Unknown layout setting '{key}'")
            continue
        numeric = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not numeric or value < 0 or (value == 0 and key in POSITIVE_SETTINGS):
            logger.warning(f"Invalid value for layout setting '{key}': {value!r}")
            continue
        overrides[key] = float(value)
    return replace(LayoutSettings(), **overrides)


def set_layout_setting(key: str, value: float) -> None:
    """Persist a single layout setting to config.json."""
    if key not in {f.name for f in fields(LayoutSettings)}:
        raise KeyError(f"Unknown layout setting '{key}'")
    config = load_config()
    config.setdefault("layout", {})[key] = value
    save_config(config)
