"""
Hub configuration.

Priority: explicit overrides (CLI options) > environment variables >
<data_dir>/config.yaml > defaults.

Environment variables:
    PORT                      Port to listen on (default 5920)
    STATEHUB_HOST             Bind address (default 0.0.0.0)
    STATEHUB_DATA_DIR         Directory for store.json and config.yaml
    CERT_PATH / KEY_PATH      PEM certificate and key, enables HTTPS
    DISABLE_HTTPS             'true' forces plain HTTP even with a cert
    STATEHUB_STATIC_DIR       Directory served at / after all API routes
    STATEHUB_CORS_ORIGINS     '*' or comma separated origins
    STATEHUB_ERROR_BROADCAST  'all' or 'origin'
    STATEHUB_LOG_LEVEL        Logging level name
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError
from .relay import ERROR_BROADCAST_ALL, ERROR_BROADCAST_MODES

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".statehub"
DEFAULT_PORT = 5920
CONFIG_FILENAME = "config.yaml"
STORE_FILENAME = "store.json"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_origins(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(origin).strip() for origin in value if str(origin).strip()]
    text = str(value).strip()
    if text == "*":
        return ["*"]
    return [origin.strip() for origin in text.split(",") if origin.strip()]


@dataclass
class HubConfig:
    """Resolved settings for one hub process."""
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    data_dir: Path = DEFAULT_DATA_DIR
    cert_path: Optional[Path] = None
    key_path: Optional[Path] = None
    disable_https: bool = False
    static_dir: Optional[Path] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    error_broadcast: str = ERROR_BROADCAST_ALL
    log_level: str = "INFO"

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    @property
    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    @property
    def use_https(self) -> bool:
        return not self.disable_https and self.cert_path is not None and self.key_path is not None

    def validate(self) -> "HubConfig":
        """Check cross-field constraints. Returns self."""
        if not 0 < self.port < 65536:
            raise ConfigError(f"port must be between 1 and 65535, got {self.port}")
        if self.error_broadcast not in ERROR_BROADCAST_MODES:
            raise ConfigError(
                f"error_broadcast must be one of {', '.join(ERROR_BROADCAST_MODES)}, got {self.error_broadcast!r}"
            )
        if (self.cert_path is None) != (self.key_path is None):
            raise ConfigError("CERT_PATH and KEY_PATH must be set together")
        if self.static_dir is not None and not self.static_dir.is_dir():
            raise ConfigError(f"static_dir {self.static_dir} is not a directory")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        data["use_https"] = self.use_https
        return data

    @classmethod
    def load(
        cls,
        data_dir: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "HubConfig":
        """
        Build a validated config from file, environment and overrides.

        Args:
            data_dir: Data directory override (e.g. --data-dir)
            overrides: Field values that win over everything else; None values are ignored
            environ: Environment mapping, defaults to os.environ

        Raises:
            ConfigError: If a value is invalid or config.yaml cannot be parsed
        """
        environ = os.environ if environ is None else environ
        if data_dir is None:
            data_dir = environ.get("STATEHUB_DATA_DIR") or DEFAULT_DATA_DIR
        resolved_dir = Path(data_dir).expanduser()

        values: Dict[str, Any] = {}
        values.update(_read_yaml(resolved_dir / CONFIG_FILENAME))
        values.update(_read_environ(environ))
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})
        values["data_dir"] = resolved_dir

        return cls._from_values(values).validate()

    @classmethod
    def _from_values(cls, values: Mapping[str, Any]) -> "HubConfig":
        known = set(cls.__dataclass_fields__)
        unknown = set(values) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        config = cls()
        for key, value in values.items():
            setattr(config, key, value)

        try:
            config.port = int(config.port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"port must be an integer, got {config.port!r}") from e

        config.data_dir = Path(config.data_dir).expanduser()
        config.cert_path = Path(config.cert_path).expanduser() if config.cert_path else None
        config.key_path = Path(config.key_path).expanduser() if config.key_path else None
        config.static_dir = Path(config.static_dir).expanduser() if config.static_dir else None
        config.disable_https = _parse_bool("disable_https", config.disable_https)
        config.cors_origins = _parse_origins(config.cors_origins)
        config.error_broadcast = str(config.error_broadcast).strip().lower()
        config.log_level = str(config.log_level).strip().upper()
        return config


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    logger.debug(f"Loaded config from {path}")
    return data


_ENV_KEYS = {
    "STATEHUB_HOST": "host",
    "PORT": "port",
    "CERT_PATH": "cert_path",
    "KEY_PATH": "key_path",
    "DISABLE_HTTPS": "disable_https",
    "STATEHUB_STATIC_DIR": "static_dir",
    "STATEHUB_CORS_ORIGINS": "cors_origins",
    "STATEHUB_ERROR_BROADCAST": "error_broadcast",
    "STATEHUB_LOG_LEVEL": "log_level",
}


def _read_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
    return {key: environ[name] for name, key in _ENV_KEYS.items() if environ.get(name)}


__all__ = ["HubConfig", "DEFAULT_DATA_DIR", "DEFAULT_PORT"]
