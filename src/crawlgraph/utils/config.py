"""
Configuration management for the crawler.
"""

import re
import yaml
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union
from dataclasses import dataclass, field, fields

from ..crawler.urls import canonicalize


DEFAULT_USER_AGENT = "crawlgraph/1.0 (+https://pypi.org/project/crawlgraph/)"

PatternLike = Union[str, Pattern]
PageCallback = Callable[[Any], Any]
FocusSelector = Callable[[Any], Any]

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised for invalid crawl settings, before any page is fetched."""


def _compile(pattern: PatternLike) -> Pattern:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


@dataclass
class CrawlConfiguration:
    """
    Everything one crawl run needs: seeds, policy options and user hooks.

    Hooks are registered with the chainable mutators below before the crawl
    starts; the scheduler locks the configuration for the duration of a run.
    """
    seed_urls: List[str]
    depth_limit: Optional[int] = None
    delay: float = 0.0
    obey_robots_txt: bool = False
    discard_page_bodies: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    workers: int = 4
    redirect_limit: int = 5
    request_timeout: int = 30
    max_content_size: int = 10 * 1024 * 1024
    follow_other_domains: bool = False

    skip_link_patterns: List[Pattern] = field(default_factory=list)
    focus_selector: Optional[FocusSelector] = None
    page_callbacks: List[PageCallback] = field(default_factory=list)
    pattern_callbacks: List[Tuple[Tuple[Pattern, ...], PageCallback]] = field(default_factory=list)
    after_crawl_callbacks: List[Callable[[Any], Any]] = field(default_factory=list)
    invalid_link_callbacks: List[Callable[[str, str], Any]] = field(default_factory=list)

    _locked: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.seed_urls, str):
            self.seed_urls = [self.seed_urls]
        else:
            self.seed_urls = list(self.seed_urls or [])
        self.skip_link_patterns = [_compile(p) for p in self.skip_link_patterns]

    def _check_unlocked(self):
        if self._locked:
            raise ConfigurationError("Crawl configuration cannot be changed while a crawl is running")

    def skip_links_like(self, *patterns: PatternLike) -> 'CrawlConfiguration':
        """Never follow links whose path matches any of the given regular expressions."""
        self._check_unlocked()
        self.skip_link_patterns.extend(_compile(p) for p in patterns)
        return self

    def focus_crawl(self, selector: FocusSelector) -> 'CrawlConfiguration':
        """
        Choose which links to follow from each page.

        The selector receives the PageRecord and returns the links to consider
        instead of all extracted links. Domain, skip, depth and robots rules
        still apply to whatever it returns.
        """
        self._check_unlocked()
        self.focus_selector = selector
        return self

    def on_every_page(self, callback: PageCallback) -> 'CrawlConfiguration':
        """Call ``callback(page)`` for every crawled page."""
        self._check_unlocked()
        self.page_callbacks.append(callback)
        return self

    def on_pages_like(self, *args) -> 'CrawlConfiguration':
        """``on_pages_like(pattern, ..., callback)``: call back for pages whose URL matches."""
        self._check_unlocked()
        if len(args) < 2 or not callable(args[-1]):
            raise ConfigurationError("on_pages_like() takes one or more patterns followed by a callback")
        *patterns, callback = args
        self.pattern_callbacks.append((tuple(_compile(p) for p in patterns), callback))
        return self

    def after_crawl(self, callback: Callable[[Any], Any]) -> 'CrawlConfiguration':
        """Call ``callback(page_map)`` once the crawl has drained."""
        self._check_unlocked()
        self.after_crawl_callbacks.append(callback)
        return self

    def on_invalid_link(self, callback: Callable[[str, str], Any]) -> 'CrawlConfiguration':
        """Call ``callback(href, page_url)`` for each link that cannot be turned into a crawlable URL."""
        self._check_unlocked()
        self.invalid_link_callbacks.append(callback)
        return self

    def lock(self):
        self._locked = True

    def unlock(self):
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def validate(self):
        """Validate configuration values."""
        if not self.seed_urls:
            raise ConfigurationError("At least one seed URL must be provided")

        for url in self.seed_urls:
            if canonicalize(url) is None:
                raise ConfigurationError(f"Seed URL is not an absolute http(s) URL: {url!r}")

        if self.depth_limit is not None and self.depth_limit < 0:
            raise ConfigurationError("depth_limit must be non-negative")

        if self.delay < 0:
            raise ConfigurationError("delay must be non-negative")

        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")

        if self.redirect_limit < 0:
            raise ConfigurationError("redirect_limit must be non-negative")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CrawlConfiguration':
        """Build from a plain mapping, e.g. the ``crawler`` section of a YAML file."""
        data = dict(data)
        skip = data.pop('skip_links_like', None) or []
        if isinstance(skip, str):
            skip = [skip]

        known = {f.name for f in fields(cls) if f.init}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown crawler option(s): {', '.join(sorted(unknown))}")

        config = cls(**data)
        return config.skip_links_like(*skip)


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = True
    prometheus_port: Optional[int] = None


@dataclass
class StorageConfig:
    """Optional backend that mirrors every crawled page."""
    type: Optional[str] = None
    file: Dict[str, Any] = field(default_factory=dict)
    redis: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlConfiguration
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Union[str, Path] = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = self.build_config(config_data)
        self._validate_config()
        return self._config

    @staticmethod
    def build_config(config_data: Dict[str, Any]) -> Config:
        """Parse configuration sections."""
        if 'crawler' not in config_data:
            raise ConfigurationError("Configuration has no 'crawler' section")

        try:
            return Config(
                crawler=CrawlConfiguration.from_dict(config_data['crawler']),
                logging=LoggingConfig(**(config_data.get('logging') or {})),
                monitoring=MonitoringConfig(**(config_data.get('monitoring') or {})),
                storage=StorageConfig(**(config_data.get('storage') or {}))
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _validate_config(self):
        if not self._config:
            raise ConfigurationError("Configuration not loaded")

        self._config.crawler.validate()

        if self._config.storage.type not in (None, 'file', 'redis'):
            raise ConfigurationError("Storage type must be 'file' or 'redis'")

        logger.info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: Union[str, Path] = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
