"""Runtime settings read from the environment (optionally seeded from .env)."""

from __future__ import annotations

import json
import logging
import os
from collections import OrderedDict
from typing import Dict, Optional

_ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_env_loaded = False

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _load_env_from_file() -> None:
    """Load variables from a .env file at the project root if present.

    Only sets variables that aren't already present in the process environment.
    """
    global _env_loaded
    if _env_loaded:
        return
    _env_loaded = True
    env_path = os.path.join(_ROOT_DIR, ".env")
    if not os.path.isfile(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            if "=" not in s:
                continue
            key, val = s.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and (key not in os.environ or not os.environ[key]):
                os.environ[key] = val


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    _load_env_from_file()
    val = os.getenv(name)
    if val is None or val == "":
        return default
    return val


def _get_int(name: str, default: int) -> int:
    try:
        return int(str(get_setting(name, str(default))).strip())
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    try:
        return float(str(get_setting(name, str(default))).strip())
    except ValueError:
        return default


def db_path() -> str:
    return get_setting("STORYVAULT_DB_PATH") or os.path.join(_ROOT_DIR, "data", "stories.db")


def api_secret() -> Optional[str]:
    return get_setting("STORYVAULT_API_SECRET")


def renderer_kind() -> str:
    return (get_setting("STORYVAULT_RENDERER") or "playwright").strip().lower()


def max_concurrency() -> int:
    return max(1, min(_get_int("STORYVAULT_MAX_CONCURRENCY", 10), 50))


def page_timeout() -> float:
    return max(1.0, _get_float("STORYVAULT_PAGE_TIMEOUT", 30.0))


def categories_file() -> str:
    return get_setting("STORYVAULT_CATEGORIES_FILE") or os.path.join(_ROOT_DIR, "data", "categories.json")


def load_categories(path: Optional[str] = None) -> "OrderedDict[str, str]":
    """Load the ordered category catalog (key -> index page URL).

    File order is the round-robin order. A missing file yields an empty catalog;
    the scheduler decides whether that is fatal.
    """
    path = path or categories_file()
    if not os.path.isfile(path):
        return OrderedDict()
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f, object_pairs_hook=OrderedDict)
    if not isinstance(raw, dict):
        raise ValueError(f"Category catalog must be a JSON object: {path}")
    out: Dict[str, str] = OrderedDict()
    for key, url in raw.items():
        key = str(key).strip()
        if key and url:
            out[key] = str(url).strip()
    return out


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or get_setting("STORYVAULT_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
