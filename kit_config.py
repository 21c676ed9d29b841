"""Kit Sample Editor - Configuration

Loads editor defaults from kit_config.json, validates them, and provides
them to the sample import path.

Design:
- Sample defaults (volume, pitch, trim, dither, half-speed) apply to newly
  imported samples only; existing samples keep their own settings
- Polarity selects the hardware target when writing kits
- KIT_CONFIG environment variable overrides the config file location

On load errors: falls back to defaults and logs warnings.
"""

import json
import os
import logging
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from version import get_version_string

logger = logging.getLogger("kit.config")


# =============================================================================
# CONFIG MODEL
# =============================================================================

@dataclass
class SampleOptions:
    """Processing options for a newly imported sample."""
    volume_db: float = 0.0
    pitch_semitones: int = 0
    trim: int = 0
    dither: bool = True
    half_speed: bool = False

    def to_dict(self) -> dict:
        return {
            'volume_db': self.volume_db,
            'pitch_semitones': self.pitch_semitones,
            'trim': self.trim,
            'dither': self.dither,
            'half_speed': self.half_speed,
        }


@dataclass
class KitConfig:
    """Loaded and validated configuration."""
    sample_defaults: SampleOptions = field(default_factory=SampleOptions)
    gba_polarity: bool = False
    log_level: str = "INFO"
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    source: str = "defaults"    # "defaults" or path


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# key → (expected type(s), validator or None)
_SAMPLE_FIELDS = {
    'volume_db': ((int, float), None),
    'pitch_semitones': (int, lambda v: -48 <= v <= 48),
    'trim': (int, lambda v: v >= 0),
    'dither': (bool, None),
    'half_speed': (bool, None),
}


# =============================================================================
# CONFIG FILE PATH
# =============================================================================
CONFIG_FILENAME = "kit_config.json"
CONFIG_ENV_VAR = "KIT_CONFIG"


def _get_config_path() -> str:
    """Path from $KIT_CONFIG, else kit_config.json next to this module."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return override
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), CONFIG_FILENAME)


# =============================================================================
# PARSING
# =============================================================================

def _valid_value(key: str, val: Any) -> bool:
    types, check = _SAMPLE_FIELDS[key]
    # bool is an int subclass; don't let True pass as a number
    if isinstance(val, bool) and types is not bool:
        return False
    if not isinstance(val, types):
        return False
    return check is None or check(val)


def _parse_sample_defaults(section: Any, config: KitConfig) -> SampleOptions:
    opts = SampleOptions()
    if not isinstance(section, dict):
        config.errors.append(
            f"{CONFIG_FILENAME}: 'sample_defaults' must be a JSON object {{}}")
        return opts
    for key, val in section.items():
        if key.startswith("_"):
            continue  # Comments
        if key not in _SAMPLE_FIELDS:
            config.warnings.append(
                f"Unknown sample default '{key}' — ignored. "
                f"Valid keys: {', '.join(sorted(_SAMPLE_FIELDS))}")
        elif not _valid_value(key, val):
            config.warnings.append(
                f"Sample default '{key}': invalid value {val!r} — using default")
        else:
            setattr(opts, key, val)
    return opts


def parse_config(data: Any, config: Optional[KitConfig] = None) -> KitConfig:
    """Validate a decoded JSON document into a KitConfig."""
    if config is None:
        config = KitConfig()
    if not isinstance(data, dict):
        config.errors.append(f"{CONFIG_FILENAME}: root must be a JSON object {{}}")
        return config

    if 'sample_defaults' in data:
        config.sample_defaults = _parse_sample_defaults(data['sample_defaults'], config)

    polarity = data.get('gba_polarity', config.gba_polarity)
    if isinstance(polarity, bool):
        config.gba_polarity = polarity
    else:
        config.warnings.append(
            f"'gba_polarity' must be true or false, got {polarity!r} — using default")

    level = data.get('log_level', config.log_level)
    if isinstance(level, str) and level.upper() in LOG_LEVELS:
        config.log_level = level.upper()
    else:
        config.warnings.append(
            f"'log_level' must be one of {', '.join(LOG_LEVELS)}, got {level!r} — using default")

    return config


def load_config(path: Optional[str] = None) -> KitConfig:
    """Load configuration from kit_config.json.

    If the file doesn't exist, uses defaults silently.
    If the file has errors, uses defaults for broken entries and reports warnings.
    Always returns a valid KitConfig.
    """
    config = KitConfig()
    config_path = path or _get_config_path()

    if not os.path.exists(config_path):
        return config

    config.source = config_path
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        config.errors.append(f"{CONFIG_FILENAME}: JSON parse error: {e}")
        logger.error(f"{CONFIG_FILENAME} parse error: {e}")
        config.source = f"defaults ({CONFIG_FILENAME} has errors)"
        return config
    except OSError as e:
        config.errors.append(f"{CONFIG_FILENAME}: read error: {e}")
        logger.error(f"{CONFIG_FILENAME} read error: {e}")
        config.source = f"defaults ({CONFIG_FILENAME} unreadable)"
        return config

    parse_config(data, config)

    for w in config.warnings:
        logger.warning(w)
    for e in config.errors:
        logger.error(e)
    logger.info(f"Config loaded from {config.source}")
    return config


# =============================================================================
# DEFAULT CONFIG FILE GENERATION
# =============================================================================

def generate_default_config() -> str:
    """Generate default kit_config.json content."""
    defaults = KitConfig()
    config: Dict[str, Any] = {
        "_comment": f"{get_version_string()} - Configuration",
        "_note": "Delete this file to reset to defaults.",
        "sample_defaults": {
            "_comment": "Applied to newly imported samples",
            **defaults.sample_defaults.to_dict(),
        },
        "_polarity": "false = DMG/GBC (0xF is -1.0), true = GBA (0xF is +1.0)",
        "gba_polarity": defaults.gba_polarity,
        "log_level": defaults.log_level,
    }
    return json.dumps(config, indent=4)


def ensure_config_file(path: Optional[str] = None):
    """Create kit_config.json with defaults if it doesn't exist."""
    path = path or _get_config_path()
    if not os.path.exists(path):
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(generate_default_config())
            logger.info(f"Created default {CONFIG_FILENAME}")
        except OSError as e:
            logger.warning(f"Could not create {CONFIG_FILENAME}: {e}")


def configure_logging(config: KitConfig):
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# =============================================================================
# MODULE-LEVEL STATE
# =============================================================================

# Loaded config (populated by init() or first get_config())
_config: Optional[KitConfig] = None


def init() -> KitConfig:
    """Initialize config. Call once at startup."""
    global _config
    ensure_config_file()
    _config = load_config()
    configure_logging(_config)
    return _config


def get_config() -> KitConfig:
    """Get current config (loads on first call)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset():
    """Forget the cached config so the next get_config() reloads it."""
    global _config
    _config = None
