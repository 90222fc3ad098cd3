"""Configuration loading for tokenrelay.

Usage:
    >>> from tokenrelay.config import load_config
    >>> from tokenrelay.auth import TokenProvider
    >>>
    >>> config = load_config(Path("config.yaml"), env_file=Path(".env"))
    >>> provider = TokenProvider.from_config(config)

Settings are merged in the following priority (highest to lowest):

1. Environment variables (TOKENRELAY_SERVER_URL, TOKENRELAY_REFRESH_TOKEN,
   TOKENRELAY_CLIENT_SECRET)
2. YAML configuration file (with ${VAR} expansion)
3. Dataclass defaults
"""

from tokenrelay.config.config import (
    RelayConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)

__all__ = [
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "RelayConfig",
]
