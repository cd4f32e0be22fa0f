# Config - Settings loader for Receipt Print Agent
# Reads config.json next to main.py; every key is optional

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config.json'


@dataclass
class PrintConfig:
    """Print agent settings with thermal-printer defaults"""
    http_host: str = '127.0.0.1'
    http_port: int = 8090
    agent_token: Optional[str] = None

    printer_name: Optional[str] = None
    copies: int = 1
    scale_factor: int = 85

    # Executor timing (seconds)
    load_timeout: float = 5.0
    settle_delay: float = 1.0
    submit_timeout: float = 5.0

    # Deferred deletion of the PDF handed to the external viewer
    viewer_grace_seconds: float = 30.0
    temp_dir: Optional[str] = None

    # 58mm roll, "auto" height
    page_width_mm: float = 58.0
    page_height_mm: float = 200.0
    surface_width_px: int = 250
    surface_height_px: int = 800

    escalate_to_viewer_on_export_failure: bool = True

    log_path: Optional[str] = None
    log_level: str = 'INFO'


def load_config(path=None) -> PrintConfig:
    """Load PrintConfig from a JSON file, falling back to defaults"""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return PrintConfig()

    with open(config_path, encoding='utf-8') as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f'{config_path} must contain a JSON object')

    known = {f.name for f in fields(PrintConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {config_path}: {', '.join(unknown)}")

    return PrintConfig(**{k: v for k, v in raw.items() if k in known})
