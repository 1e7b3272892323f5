from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "app": {
        "data_dir": None,
        "db_path": None,
        "log_dir": None,
        "language": "en",
    },
    "ocr": {
        "engine": "rapidocr",
        "models_dir": None,
        "tesseract_lang": "eng",
        "rotations": [0, 90, 180, 270],
        "max_candidates": 6,
    },
}


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def save_yaml(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")


def load_config(path: Path | None) -> Dict[str, Any]:
    """Load YAML config and fill in missing sections/keys from DEFAULT_CONFIG."""
    cfg = load_yaml(path) if path else {}
    for section, defaults in DEFAULT_CONFIG.items():
        current = cfg.get(section)
        if not isinstance(current, dict):
            current = {}
        for key, value in defaults.items():
            current.setdefault(key, copy.deepcopy(value))
        cfg[section] = current
    return cfg


def deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur

