"""Configuration loading from environment variables and an optional YAML file."""

import os
import logging
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# YAML key -> environment variable that overrides it
_ENV_KEYS = {
    "log_base": "CLOG_LOG_BASE",
    "max_line_bytes": "CLOG_MAX_LINE_BYTES",
    "embedding_batch_size": "CLOG_EMBED_BATCH_SIZE",
    "log_level": "CLOG_LOG_LEVEL",
    "http_timeout": "CLOG_HTTP_TIMEOUT",
    "ollama_host": "OLLAMA_HOST",
    "ollama_embed_model": "OLLAMA_EMBED_MODEL",
    "ollama_chat_model": "OLLAMA_CHAT_MODEL",
    "voyage_api_key": "VOYAGE_API_KEY",
    "openai_api_key": "OPENAI_API_KEY",
}


def _default_log_base() -> str:
    return os.path.join(os.environ.get("HOME", ""), ".claude", "logs")


@dataclass(frozen=True)
class Config:
    log_base: str = ""
    max_line_bytes: int = 10 * 1024 * 1024  # 10 MB
    embedding_batch_size: int = 64
    log_level: str = "WARNING"
    http_timeout: float = 60.0
    ollama_host: str = ""
    ollama_embed_model: str = ""
    ollama_chat_model: str = ""
    voyage_api_key: str = ""
    openai_api_key: str = ""

    def project_slug(self, cwd: str) -> str:
        """Turn a working directory into a flat directory name."""
        return cwd.lstrip("/").replace("/", "__")

    def log_dir(self, cwd: str) -> str:
        return os.path.join(self.log_base, self.project_slug(cwd))

    def db_path(self, cwd: str) -> str:
        return os.path.join(self.log_dir(cwd), "events.duckdb")


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s, using defaults: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, using defaults", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config from env vars layered over parsed YAML data and defaults.

    Raises ValueError naming the setting when a value can't be converted.
    """
    yaml_data = yaml_data or {}

    def _get(key: str, default, cast=str):
        value = os.environ.get(_ENV_KEYS[key])
        if value is None or value == "":
            value = yaml_data.get(key, default)
        if value is None:
            value = default
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"invalid {key} {value!r} (from {_ENV_KEYS[key]} or config file)"
            ) from e

    log_level = _get("log_level", Config.log_level).upper()
    if log_level not in LOG_LEVELS:
        logger.warning("Unknown log level %r, using %s", log_level, Config.log_level)
        log_level = Config.log_level

    max_line_bytes = _get("max_line_bytes", Config.max_line_bytes, int)
    batch_size = _get("embedding_batch_size", Config.embedding_batch_size, int)
    if max_line_bytes <= 0 or batch_size <= 0:
        raise ValueError("max_line_bytes and embedding_batch_size must be positive")

    return Config(
        log_base=_get("log_base", "") or _default_log_base(),
        max_line_bytes=max_line_bytes,
        embedding_batch_size=batch_size,
        log_level=log_level,
        http_timeout=_get("http_timeout", Config.http_timeout, float),
        ollama_host=_get("ollama_host", ""),
        ollama_embed_model=_get("ollama_embed_model", ""),
        ollama_chat_model=_get("ollama_chat_model", ""),
        voyage_api_key=_get("voyage_api_key", ""),
        openai_api_key=_get("openai_api_key", ""),
    )


def config_from_env() -> Config:
    """Load the YAML file named by CLOG_CONFIG (if any) and apply the environment."""
    return load_config(load_yaml_config(os.environ.get("CLOG_CONFIG")))
