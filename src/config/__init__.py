"""Configuration loading for cencli.

Configuration is read from a single YAML file, expanded with ${VAR} /
${VAR:-default} environment references, overlaid with CENCLI_* environment
variables and finally with command-line overrides.

Configuration File
------------------

~/.config/cencli/config.yaml (override with CENCLI_CONFIG or --config):

    api:
      token: ${CENSYS_API_TOKEN:-}
      org-id: ${CENSYS_ORG_ID:-}
    output-format: json
    timeout: 30s
    retry-strategy:
      max-attempts: 2
      base-delay: 500ms
      max-delay: 30s
      backoff: fixed
    search:
      page-size: 100
      max-pages: 1
    history:
      max-days: 366

Usage Examples
--------------

    >>> from config import load_config, get_config
    >>> config = load_config()
    >>> config.retry.max_attempts
    2

Custom config path:
    >>> from pathlib import Path
    >>> config = load_config(config_path=Path("/custom/path/config.yaml"))
"""

from config.config import (
    ApiConfig,
    CliConfig,
    HistoryConfig,
    SearchConfig,
    build_config,
    get_config,
    load_config,
    parse_duration,
    reset_config,
    set_config,
)

__all__ = [
    # Core config functions
    "load_config",
    "build_config",
    "get_config",
    "set_config",
    "reset_config",
    "parse_duration",
    # Core config classes
    "CliConfig",
    "ApiConfig",
    "SearchConfig",
    "HistoryConfig",
]
