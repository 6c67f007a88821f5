"""Feed list and processing parameters, loaded once at startup."""
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from processor.models import FeedSource

logger = logging.getLogger(__name__)

CONFIG_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(CONFIG_DIR, 'feeds.yaml')

# Environment variable -> ProcessingConfig field
ENV_OVERRIDES = {
    'MAX_EVENTS_PER_FEED': 'max_events_per_feed',
    'MAX_DAYS_IN_FUTURE': 'max_days_in_future',
    'MIN_DAYS_IN_FUTURE': 'min_days_in_future',
    'TIMEOUT_SECONDS': 'fetch_timeout',
}


class ConfigError(ValueError):
    """Configuration file or environment is invalid."""


@dataclass(frozen=True)
class ProcessingConfig:
    """Parameters shared by every feed."""
    max_events_per_feed: int = 50
    max_days_in_future: int = 365
    min_days_in_future: int = 0
    # Advisory only: formatting always uses the process's local timezone.
    default_timezone: str = 'Europe/Stockholm'
    # None stamps the feed's name on events without a location.
    default_location: Optional[str] = None
    fetch_timeout: int = 30
    fetch_concurrency: int = 8

    def validate(self) -> None:
        """
        Check parameter ranges.

        Raises:
            ConfigError: If any parameter is out of range
        """
        for name in ('max_events_per_feed', 'max_days_in_future', 'min_days_in_future'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")

        for name in ('fetch_timeout', 'fetch_concurrency'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")

        if self.min_days_in_future > self.max_days_in_future:
            raise ConfigError(
                f"min_days_in_future ({self.min_days_in_future}) exceeds "
                f"max_days_in_future ({self.max_days_in_future})"
            )

        if self.default_location is not None and (
            not isinstance(self.default_location, str) or not self.default_location.strip()
        ):
            raise ConfigError(
                f"default_location must be a non-empty string or null, got {self.default_location!r}"
            )


@dataclass(frozen=True)
class AppConfig:
    """Feeds plus processing parameters."""
    feeds: Tuple[FeedSource, ...] = ()
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)


def parse_config(data: Optional[Mapping[str, Any]]) -> AppConfig:
    """
    Build an AppConfig from a decoded YAML document.

    Args:
        data: Mapping with optional ``feeds`` and ``processing`` keys

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If the document is malformed
    """
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigError("Config document must be a mapping")

    feeds = []
    for index, entry in enumerate(data.get('feeds') or []):
        if not isinstance(entry, Mapping):
            raise ConfigError(f"Feed #{index + 1} must be a mapping")
        name = str(entry.get('name') or '').strip()
        url = str(entry.get('url') or '').strip()
        if not name or not url:
            raise ConfigError(f"Feed #{index + 1} needs both name and url")
        feeds.append(FeedSource(name=name, url=url))

    processing_data = data.get('processing') or {}
    if not isinstance(processing_data, Mapping):
        raise ConfigError("processing must be a mapping")

    known = set(ProcessingConfig.__dataclass_fields__)
    unknown = set(processing_data) - known
    if unknown:
        raise ConfigError(f"Unknown processing keys: {sorted(unknown)}")

    processing = ProcessingConfig(**processing_data)
    processing.validate()

    return AppConfig(feeds=tuple(feeds), processing=processing)


def apply_env_overrides(config: AppConfig, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Override processing parameters from environment variables."""
    environ = os.environ if environ is None else environ

    overrides: Dict[str, int] = {}
    for env_name, field_name in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == '':
            continue
        try:
            overrides[field_name] = int(raw)
        except ValueError as e:
            raise ConfigError(f"{env_name} must be an integer, got {raw!r}") from e

    if not overrides:
        return config

    processing = replace(config.processing, **overrides)
    processing.validate()
    return replace(config, processing=processing)


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load configuration from YAML and the environment.

    Args:
        path: Config file; defaults to $FEEDS_CONFIG, then the bundled feeds.yaml
        environ: Environment mapping (default: os.environ)

    Returns:
        Validated AppConfig
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get('FEEDS_CONFIG') or DEFAULT_CONFIG_PATH

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = apply_env_overrides(parse_config(data), environ)
    logger.info(
        f"Loaded {len(config.feeds)} feeds from {path}",
        extra={'config_path': path}
    )
    return config
