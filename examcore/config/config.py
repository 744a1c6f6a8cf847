from __future__ import annotations

"""Configuration loading and validation for examcore.

This module loads YAML configuration, applies defaults, and validates that
enumerations and numeric ranges are sane before a session is built from it.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml  # type: ignore
except Exception:  # pragma: no cover - dependency issues handled at runtime
    yaml = None  # type: ignore

from ..session.errors import ConfigurationError

logger = logging.getLogger(__name__)

ALLOWED_KINDS = {"exam", "challenge"}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if yaml is None:
        raise ConfigurationError("pyyaml is not installed. Please install dependencies.")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Config file not found: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def _positive_number(section: Dict[str, Any], key: str, default: float) -> None:
    value = section.get(key)
    try:
        ok = value is not None and float(value) > 0
    except (TypeError, ValueError):
        ok = False
    if not ok:
        logger.warning("Invalid %s=%r, using %s", key, value, default)
        section[key] = default


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    # Shallow defaults for missing sections
    for section in ("grading", "clock", "session", "scoring", "thresholds", "storage", "logging"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    grading = cfg["grading"]
    clock = cfg["clock"]
    session = cfg["session"]
    scoring = cfg["scoring"]
    thresholds = cfg["thresholds"]
    storage = cfg["storage"]
    log_cfg = cfg["logging"]

    grading.setdefault("endpoint", None)
    grading.setdefault("timeout_seconds", 10)
    grading.setdefault("token_env", "EXAMCORE_TOKEN")
    clock.setdefault("tick_interval_seconds", 1.0)
    session.setdefault("allow_pause", True)
    scoring.setdefault("default_points", 10)
    storage.setdefault("enabled", False)
    storage.setdefault("data_dir", "./storage/data")
    log_cfg.setdefault("level", "INFO")
    log_cfg.setdefault("explain", False)

    _positive_number(grading, "timeout_seconds", 10)
    _positive_number(clock, "tick_interval_seconds", 1.0)

    points = scoring.get("default_points")
    if not isinstance(points, int) or isinstance(points, bool) or points < 0:
        raise ConfigurationError(f"scoring.default_points must be a non-negative integer, got {points!r}")

    # Thresholds are never invented here; unknown kinds are dropped, bad values rejected.
    for kind in list(thresholds):
        if kind not in ALLOWED_KINDS:
            logger.warning("Unknown assessment kind %r in thresholds, ignoring.", kind)
            thresholds.pop(kind)
            continue
        value = thresholds[kind]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not (0 <= value <= 100):
            raise ConfigurationError(f"thresholds.{kind} must be within 0..100, got {value!r}")

    level = str(log_cfg.get("level", "INFO")).upper()
    if level not in ALLOWED_LOG_LEVELS:
        logger.warning("Unsupported logging level %r, using INFO.", level)
        level = "INFO"
    log_cfg["level"] = level

    session["allow_pause"] = bool(session.get("allow_pause"))
    storage["enabled"] = bool(storage.get("enabled"))
    log_cfg["explain"] = bool(log_cfg.get("explain"))
    return cfg


def resolve_pass_threshold(cfg: Dict[str, Any], kind: str, catalog_threshold: Optional[float] = None) -> float:
    """Pick the pass threshold for one session: catalog value, else the configured kind value."""
    if catalog_threshold is not None:
        return float(catalog_threshold)
    value = (cfg.get("thresholds") or {}).get(kind)
    if value is None:
        raise ConfigurationError(f"no pass threshold configured for assessment kind {kind!r}")
    return float(value)
