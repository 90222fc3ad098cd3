"""tokenrelay configuration from YAML file.

Loads identity-provider defaults, refresh tuning, HTTP settings and the
pre-registered clients from one YAML file:

    tokenrelay:
      defaults:
        server_url: https://example.auth0.com
        refresh_token: ${AUTH0_REFRESH_TOKEN}
        auto_refresh_after_seconds: 3000
      refresh:
        gate_timeout_seconds: 5
        freshness_window_seconds: 5
      http:
        timeout_seconds: 30
      clients:
        - client_id: abc123
          username: svc-orders
          password: ${ORDERS_PASSWORD}

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax. An optional .env file is loaded first.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from tokenrelay.auth.models import CONFIG_FIELDS, Credential, DefaultSettings

logger = logging.getLogger(__name__)

ROOT_KEY = "tokenrelay"

# Default config file: config.yaml next to this module
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

# Environment variables that take precedence over the YAML defaults section
ENV_OVERRIDES = {
    "server_url": "TOKENRELAY_SERVER_URL",
    "refresh_token": "TOKENRELAY_REFRESH_TOKEN",
    "client_secret": "TOKENRELAY_CLIENT_SECRET",
}

DEFAULT_SECTION_KEYS = (
    "server_url",
    "username",
    "password",
    "connection",
    "refresh_token",
    "client_secret",
    "audience",
)

_CLIENT_KEYS = set(CONFIG_FIELDS) - {"auto_refresh_after"}


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _seconds_to_timedelta(value: Any) -> Optional[timedelta]:
    if value is None or value == "":
        return None
    return timedelta(seconds=float(value))


def _client_from_dict(entry: Dict[str, Any]) -> Credential:
    """Build a partial Credential from one ``clients`` entry."""
    client_id = entry.get("client_id")
    if not client_id:
        raise ValueError(f"Invalid client entry, missing 'client_id': {sorted(entry.keys())}")

    unknown = set(entry) - _CLIENT_KEYS - {"client_id", "auto_refresh_after_seconds"}
    if unknown:
        logger.warning(f"Ignoring unknown keys for client {client_id}: {sorted(unknown)}")

    values = {key: entry[key] for key in _CLIENT_KEYS if entry.get(key) not in (None, "")}
    return Credential(
        client_id=str(client_id),
        auto_refresh_after=_seconds_to_timedelta(entry.get("auto_refresh_after_seconds")),
        **{key: str(value) for key, value in values.items()},
    )


@dataclass
class RelayConfig:
    """tokenrelay configuration.

    Timing values are in seconds.
    """

    # =========================================================================
    # IDENTITY PROVIDER DEFAULTS (fill any field a client leaves unset)
    # =========================================================================
    server_url: str = ""
    username: str = ""
    password: str = ""
    connection: str = ""
    refresh_token: str = ""
    client_secret: str = ""
    audience: str = ""
    auto_refresh_after_seconds: Optional[float] = None

    # =========================================================================
    # REFRESH TUNING
    # =========================================================================
    gate_timeout_seconds: float = 5.0
    freshness_window_seconds: float = 5.0

    # =========================================================================
    # HTTP
    # =========================================================================
    http_timeout_seconds: float = 30.0

    # =========================================================================
    # PRE-REGISTERED CLIENTS
    # =========================================================================
    clients: List[Dict[str, Any]] = field(default_factory=list)

    def to_default_settings(self) -> DefaultSettings:
        return DefaultSettings(
            server_url=self.server_url or None,
            username=self.username or None,
            password=self.password or None,
            connection=self.connection or None,
            refresh_token=self.refresh_token or None,
            client_secret=self.client_secret or None,
            audience=self.audience or None,
            auto_refresh_after=_seconds_to_timedelta(self.auto_refresh_after_seconds),
        )

    def client_credentials(self) -> List[Credential]:
        """Partial credentials for every configured client."""
        return [_client_from_dict(entry) for entry in self.clients]

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a value is out of range or a client entry is invalid
        """
        if self.gate_timeout_seconds <= 0:
            raise ValueError(
                f"refresh.gate_timeout_seconds must be > 0, got {self.gate_timeout_seconds}"
            )
        if self.freshness_window_seconds < 0:
            raise ValueError(
                f"refresh.freshness_window_seconds must be >= 0, got {self.freshness_window_seconds}"
            )
        if self.http_timeout_seconds <= 0:
            raise ValueError(
                f"http.timeout_seconds must be > 0, got {self.http_timeout_seconds}"
            )
        self.client_credentials()


def load_config(
    config_path: Optional[Path] = None,
    env_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RelayConfig:
    """Load tokenrelay configuration from a YAML file.

    Args:
        config_path: YAML file (default: config.yaml next to this module)
        env_file: Optional .env file loaded before variable expansion
        overrides: Dict deep-merged over the ``tokenrelay`` section

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the ``tokenrelay`` section is missing or invalid
    """
    if env_file is not None:
        load_dotenv(env_file)

    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = _expand_env_vars(load_yaml(config_path))

    if ROOT_KEY not in yaml_data:
        raise ValueError(
            f"Invalid config file: missing '{ROOT_KEY}:' section\n"
            "See config.yaml.example for correct structure"
        )

    relay_config = yaml_data[ROOT_KEY] or {}
    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        relay_config = _deep_merge(relay_config, overrides)

    defaults = relay_config.get("defaults") or {}
    refresh = relay_config.get("refresh") or {}
    http = relay_config.get("http") or {}

    default_values = {key: str(defaults.get(key) or "") for key in DEFAULT_SECTION_KEYS}
    for key, env_var in ENV_OVERRIDES.items():
        if os.getenv(env_var):
            default_values[key] = os.environ[env_var]

    auto_refresh = defaults.get("auto_refresh_after_seconds")
    config = RelayConfig(
        **default_values,
        auto_refresh_after_seconds=float(auto_refresh) if auto_refresh not in (None, "") else None,
        gate_timeout_seconds=float(refresh.get("gate_timeout_seconds", 5.0)),
        freshness_window_seconds=float(refresh.get("freshness_window_seconds", 5.0)),
        http_timeout_seconds=float(http.get("timeout_seconds", 30.0)),
        clients=list(relay_config.get("clients") or []),
    )

    logger.debug(f"  - Default server URL: {config.server_url or '<none>'}")
    logger.debug(f"  - Configured clients: {len(config.clients)}")

    config.validate()
    return config


_relay_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """Get or load the singleton config instance."""
    global _relay_config
    if _relay_config is None:
        _relay_config = load_config()
    return _relay_config


def set_config(config: RelayConfig) -> None:
    """Set the singleton config instance (useful for testing)."""
    global _relay_config
    _relay_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _relay_config
    _relay_config = None


__all__ = [
    "RelayConfig",
    "load_config",
    "load_yaml",
    "get_config",
    "set_config",
    "reset_config",
    "DEFAULT_CONFIG_FILE",
]
