"""Configuration loading from an optional YAML file, env vars, and CLI args."""

import os
import logging
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    adb_path: str = ""                 # empty: resolve from platform SDK location / PATH
    device_id: str | None = None
    filter_tag: str = "AppsFlyer_"
    capture_timeout: float = 2.0       # bounded capture deadline, seconds
    buffer_capacity: int = 5000        # continuous-mode window size
    view_limit: int = 700              # most recent keyword matches kept per view
    wait_timeout: float = 2.0          # wait for the first line in continuous mode
    dev_key: str | None = None
    install_data_url: str = "https://gcdsdk.appsflyer.com/install_data/v4.0"
    http_timeout: float = 10.0
    host: str = "127.0.0.1"
    port: int = 5000


# field name -> environment variable
ENV_VARS = {
    "adb_path": "ADB_PATH",
    "device_id": "ANDROID_SERIAL",
    "filter_tag": "AFLOGCAT_FILTER_TAG",
    "capture_timeout": "CAPTURE_TIMEOUT",
    "buffer_capacity": "BUFFER_CAPACITY",
    "view_limit": "VIEW_LIMIT",
    "wait_timeout": "WAIT_TIMEOUT",
    "dev_key": "DEV_KEY",
    "install_data_url": "INSTALL_DATA_URL",
    "http_timeout": "HTTP_TIMEOUT",
    "host": "AFLOGCAT_HOST",
    "port": "AFLOGCAT_PORT",
}

_CASTS = {"capture_timeout": float, "buffer_capacity": int, "view_limit": int,
          "wait_timeout": float, "http_timeout": float, "port": int}


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path or unreadable."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s (%s), using defaults", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, using defaults", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config: defaults < YAML < env vars < CLI args."""
    yaml_data = yaml_data or {}
    known = {f.name for f in fields(Config)}
    for key in yaml_data:
        if key not in known:
            logger.warning("Ignoring unknown config key: %s", key)

    values = {}
    for name in known:
        value = yaml_data.get(name)
        env_value = os.environ.get(ENV_VARS[name])
        if env_value not in (None, ""):
            value = env_value
        if value is None:
            continue
        cast = _CASTS.get(name)
        if cast is None:
            values[name] = str(value)
            continue
        try:
            number = cast(value)
        except (TypeError, ValueError):
            logger.warning("Invalid %s %r, using default", name, value)
            continue
        if number <= 0:
            logger.warning("%s must be positive, got %r, using default", name, value)
            continue
        values[name] = number

    device = getattr(cli_args, "device", None)
    if device:
        values["device_id"] = device

    return Config(**values)
