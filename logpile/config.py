"""Configuration loading from an optional YAML file and environment variables."""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    source_host: str = "localhost"
    resolve_hosts: bool = True
    dns_timeout: float = 2.0
    batch_size: int = 100
    flush_interval: float = 1.0
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config from YAML data, with environment variables taking precedence."""
    data = yaml_data or {}

    def _get(key: str, env: str, default):
        return os.environ.get(env, data.get(key, default))

    log_level = str(_get("log_level", "LOGPILE_LOG_LEVEL", Config.log_level)).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"invalid log level: {log_level}")

    return Config(
        source_host=str(_get("source_host", "LOGPILE_SOURCE_HOST", Config.source_host)),
        resolve_hosts=_parse_bool(_get("resolve_hosts", "LOGPILE_RESOLVE_HOSTS", Config.resolve_hosts)),
        dns_timeout=float(_get("dns_timeout", "LOGPILE_DNS_TIMEOUT", Config.dns_timeout)),
        batch_size=int(_get("batch_size", "LOGPILE_BATCH_SIZE", Config.batch_size)),
        flush_interval=float(_get("flush_interval", "LOGPILE_FLUSH_INTERVAL", Config.flush_interval)),
        log_level=log_level,
    )
