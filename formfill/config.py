"""Runtime settings and logging setup.

Settings come from an optional YAML file, then ``FORMFILL_*`` environment
variables override individual keys.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
import logging
import os
from pathlib import Path
from typing import Any

import structlog
import yaml

ENV_PREFIX = "FORMFILL_"
DEFAULT_CONFIG_FILE = "formfill.yaml"


@dataclass(slots=True)
class Settings:
    data_dir: Path = Path(".formfill")
    output_dir: Path = Path(".formfill/filled-requests")
    uploads_dir: Path = Path(".formfill/uploads/templates")
    zoom: float = 1.5
    device_pixel_ratio: float = 1.0
    fetch_timeout: float = 30.0
    log_level: str = "INFO"

    @property
    def templates_dir(self) -> Path:
        return self.data_dir / "templates"

    @property
    def requests_dir(self) -> Path:
        return self.data_dir / "requests"


def _coerce(name: str, value: Any) -> Any:
    default = getattr(Settings(), name)
    if isinstance(default, Path):
        return Path(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


def load_settings(path: str | Path | None = None, environ: dict[str, str] | None = None) -> Settings:
    environ = os.environ if environ is None else environ
    config_path = Path(path or environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_FILE))

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open(encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

    known = {item.name for item in fields(Settings)}
    values: dict[str, Any] = {}
    for name in known:
        if name in raw:
            values[name] = _coerce(name, raw[name])
        env_value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            values[name] = _coerce(name, env_value)

    unknown = sorted(set(raw) - known)
    settings = Settings(**values)
    if unknown:
        structlog.get_logger().warning("config.unknown_keys", keys=unknown, path=str(config_path))
    return settings


def configure_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
    )
