"""CLI configuration from YAML file and environment.

Loads from ~/.config/cencli/config.yaml (or CENCLI_CONFIG / --config):
- API endpoint and credentials
- Output and display flags
- Overall command timeout and per-request HTTP timeout
- Retry strategy, search pagination and history limits

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files,
and CENCLI_* variables override individual keys.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.errors.exceptions import ConfigError
from core.resilience.retry import RetryPolicy
from core.types import BackoffKind

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.platform.censys.io"
OUTPUT_FORMATS = ("json", "ndjson")

DEFAULT_CONFIG_FILE = Path.home() / ".config" / "cencli" / "config.yaml"

DEFAULTS: Dict[str, Any] = {
    "api": {
        "base-url": DEFAULT_BASE_URL,
        "token": "",
        "org-id": "",
    },
    "output-format": "json",
    "streaming": False,
    "quiet": False,
    "debug": False,
    "no-spinner": False,
    "timeout": "30s",
    "timeouts": {
        "http": "0s",
    },
    "retry-strategy": {
        "max-attempts": 2,
        "base-delay": "500ms",
        "max-delay": "30s",
        "backoff": "fixed",
    },
    "search": {
        "page-size": 100,
        "max-pages": 1,
    },
    "history": {
        "max-days": 366,
    },
}

# Environment variable -> config key path
ENV_OVERRIDES: Dict[str, tuple[str, ...]] = {
    "CENSYS_API_TOKEN": ("api", "token"),
    "CENSYS_ORG_ID": ("api", "org-id"),
    "CENCLI_API_BASE_URL": ("api", "base-url"),
    "CENCLI_OUTPUT_FORMAT": ("output-format",),
    "CENCLI_STREAMING": ("streaming",),
    "CENCLI_QUIET": ("quiet",),
    "CENCLI_DEBUG": ("debug",),
    "CENCLI_NO_SPINNER": ("no-spinner",),
    "CENCLI_TIMEOUT": ("timeout",),
    "CENCLI_TIMEOUTS_HTTP": ("timeouts", "http"),
    "CENCLI_RETRY_STRATEGY_MAX_ATTEMPTS": ("retry-strategy", "max-attempts"),
    "CENCLI_RETRY_STRATEGY_BASE_DELAY": ("retry-strategy", "base-delay"),
    "CENCLI_RETRY_STRATEGY_MAX_DELAY": ("retry-strategy", "max-delay"),
    "CENCLI_RETRY_STRATEGY_BACKOFF": ("retry-strategy", "backoff"),
    "CENCLI_SEARCH_PAGE_SIZE": ("search", "page-size"),
    "CENCLI_SEARCH_MAX_PAGES": ("search", "max-pages"),
    "CENCLI_HISTORY_MAX_DAYS": ("history", "max-days"),
}

_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")


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
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

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


def get_config_value(env_var: str, yaml_value: Any, default: Any = None) -> Any:
    """Resolve a setting: environment variable, then YAML value, then default."""
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    if yaml_value is not None and yaml_value != "":
        return yaml_value
    return default


def parse_duration(value: Any, key: str = "duration") -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) and strings such as "500ms", "30s",
    "2m", "1h" or combinations like "1m30s".

    Raises:
        ConfigError: value is negative or not a recognised duration
    """
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ConfigError(f"{key}: invalid duration '{value}'") from None
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    else:
        raise ConfigError(f"{key}: expected a duration, got {value!r}")

    if seconds < 0:
        raise ConfigError(f"{key}: duration must be >= 0, got '{value}'")
    return seconds


def _parse_bool(value: Any, key: str) -> bool:
    # bool('false') would be True, so strings need explicit handling
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
    if isinstance(value, int):
        return bool(value)
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key}: expected an integer, got {value!r}") from None


@dataclass
class ApiConfig:
    base_url: str = DEFAULT_BASE_URL
    token: str = ""
    org_id: str = ""


@dataclass
class SearchConfig:
    page_size: int = 100
    max_pages: int = 1  # -1 = unlimited


@dataclass
class HistoryConfig:
    max_days: int = 366  # 0 = unlimited


@dataclass
class CliConfig:
    """CLI configuration.

    Configuration structure:
        api: {base-url, token, org-id}
        output-format: json|ndjson
        streaming / quiet / debug / no-spinner: bool
        timeout: overall command timeout (0 disables)
        timeouts: {http}: per-request timeout (0 disables)
        retry-strategy: {max-attempts, base-delay, max-delay, backoff}
        search: {page-size, max-pages}
        history: {max-days}

    All durations are seconds once loaded.
    """

    api: ApiConfig = field(default_factory=ApiConfig)
    output_format: str = "json"
    streaming: bool = False
    quiet: bool = False
    debug: bool = False
    no_spinner: bool = False
    timeout: float = 30.0
    http_timeout: float = 0.0
    retry: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(
            max_attempts=2, base_delay=0.5, max_delay=30.0, backoff=BackoffKind.FIXED
        )
    )
    search: SearchConfig = field(default_factory=SearchConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    config_path: Optional[Path] = None

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output-format must be one of {list(OUTPUT_FORMATS)}, got '{self.output_format}'"
            )
        if not self.api.base_url.startswith(("http://", "https://")):
            raise ConfigError(
                f"api.base-url must start with http:// or https://, got '{self.api.base_url}'"
            )
        if self.retry.base_delay < 0:
            raise ConfigError(
                f"retry-strategy.base-delay must be >= 0, got {self.retry.base_delay}"
            )
        if self.retry.max_delay < 0:
            raise ConfigError(
                f"retry-strategy.max-delay must be >= 0, got {self.retry.max_delay}"
            )
        if self.search.page_size < 1:
            raise ConfigError(f"search.page-size must be >= 1, got {self.search.page_size}")
        if self.search.max_pages == 0 or self.search.max_pages < -1:
            raise ConfigError(
                f"search.max-pages must be > 0 or -1 (unlimited), got {self.search.max_pages}"
            )
        if self.history.max_days < 0:
            raise ConfigError(f"history.max-days must be >= 0, got {self.history.max_days}")

    @property
    def has_token(self) -> bool:
        return bool(self.api.token)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    result = data
    for env_var, path in ENV_OVERRIDES.items():
        value = get_config_value(env_var, None)
        if value is None:
            continue
        overlay: Dict[str, Any] = {path[-1]: value}
        for key in reversed(path[:-1]):
            overlay = {key: overlay}
        result = _deep_merge(result, overlay)
    return result


def _build_retry_policy(section: Dict[str, Any]) -> RetryPolicy:
    try:
        return RetryPolicy(
            max_attempts=_parse_int(section.get("max-attempts"), "retry-strategy.max-attempts"),
            base_delay=parse_duration(section.get("base-delay"), "retry-strategy.base-delay"),
            max_delay=parse_duration(section.get("max-delay"), "retry-strategy.max-delay"),
            backoff=section.get("backoff"),
        )
    except ValueError as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"retry-strategy: {e}") from e


def build_config(data: Dict[str, Any], config_path: Optional[Path] = None) -> CliConfig:
    """Build and validate a CliConfig from a merged config dict."""
    merged = _deep_merge(DEFAULTS, data)
    api = merged.get("api") or {}
    search = merged.get("search") or {}
    history = merged.get("history") or {}
    timeouts = merged.get("timeouts") or {}

    config = CliConfig(
        api=ApiConfig(
            base_url=str(api.get("base-url") or DEFAULT_BASE_URL).rstrip("/"),
            token=str(api.get("token") or ""),
            org_id=str(api.get("org-id") or ""),
        ),
        output_format=str(merged.get("output-format")).lower(),
        streaming=_parse_bool(merged.get("streaming"), "streaming"),
        quiet=_parse_bool(merged.get("quiet"), "quiet"),
        debug=_parse_bool(merged.get("debug"), "debug"),
        no_spinner=_parse_bool(merged.get("no-spinner"), "no-spinner"),
        timeout=parse_duration(merged.get("timeout"), "timeout"),
        http_timeout=parse_duration(timeouts.get("http"), "timeouts.http"),
        retry=_build_retry_policy(merged.get("retry-strategy") or {}),
        search=SearchConfig(
            page_size=_parse_int(search.get("page-size"), "search.page-size"),
            max_pages=_parse_int(search.get("max-pages"), "search.max-pages"),
        ),
        history=HistoryConfig(
            max_days=_parse_int(history.get("max-days"), "history.max-days"),
        ),
        config_path=config_path,
    )
    config.validate()
    return config


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> CliConfig:
    """Load CLI configuration.

    Merge priority (highest to lowest):
    1. overrides (command-line flags)
    2. Environment variables (CENCLI_*, CENSYS_API_TOKEN, CENSYS_ORG_ID)
    3. YAML configuration file
    4. Built-in defaults

    An explicitly requested config file must exist; the default location
    is optional.
    """
    explicit = config_path is not None or bool(os.getenv("CENCLI_CONFIG"))
    if config_path is None:
        env_path = os.getenv("CENCLI_CONFIG")
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE

    if explicit and not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    yaml_data: Dict[str, Any] = {}
    if config_path.exists():
        logger.debug("Loading configuration from file", extra={"config_path": str(config_path)})
        try:
            yaml_data = load_yaml(config_path)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(yaml_data, dict):
            raise ConfigError(f"Invalid config file {config_path}: expected a mapping")
        yaml_data = _expand_env_vars(yaml_data)

    data = _apply_env_overrides(yaml_data)

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        data = _deep_merge(data, overrides)

    config = build_config(data, config_path if config_path.exists() else None)

    if not config.api.token:
        logger.debug("API token not configured")
    logger.debug("Configuration validation passed")
    return config


_cli_config: Optional[CliConfig] = None


def get_config() -> CliConfig:
    """Get or load the singleton CLI config instance."""
    global _cli_config
    if _cli_config is None:
        _cli_config = load_config()
    return _cli_config


def set_config(config: CliConfig) -> None:
    """Set the singleton CLI config instance (useful for testing)."""
    global _cli_config
    _cli_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _cli_config
    _cli_config = None
