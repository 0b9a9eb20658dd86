"""
Configuration loading and logging setup
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'config.yaml'

# Used when neither an explicit nor the packaged config file can be read
FALLBACK_CONFIG: Dict[str, Any] = {
    'logging': {'level': 'INFO', 'file': 'slidecanvas.log'},
    'deck': {'slide_width': 13.333333},
    'mapper': {'font_mapping': {}, 'default_font': 'Arial'},
    'pdf': {'page_format': 'a4', 'margin_mm': 10, 'spacing_mm': 5, 'notes_fraction': 0.7},
    'assets': {'timeout': 15.0},
    'template': {'path': None, 'strict': True},
}


def setup_logging(level: str = "INFO", log_file: Optional[str] = 'slidecanvas.log'):
    """
    Setup logging configuration.

    Args:
        level: Logging level
        log_file: Log file path, or None to log to the console only
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    The packaged defaults are read first and the explicit file, if any, is
    merged over them, so partial files are valid.

    Args:
        config_path: Path to config file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config_path is given but does not exist
    """
    logger = logging.getLogger(__name__)

    if DEFAULT_CONFIG_PATH.exists():
        config = deep_merge(FALLBACK_CONFIG, _read_yaml(DEFAULT_CONFIG_PATH))
    else:
        logger.warning("Packaged configuration missing, using built-in defaults")
        config = copy.deepcopy(FALLBACK_CONFIG)

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        config = deep_merge(config, _read_yaml(path))
        logger.info(f"Loaded configuration from {path}")

    return config
