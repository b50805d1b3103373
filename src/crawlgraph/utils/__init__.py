"""
Utility modules for the crawler.
"""

from .config import Config, ConfigManager, ConfigurationError, CrawlConfiguration, load_config

__all__ = ['Config', 'ConfigManager', 'ConfigurationError', 'CrawlConfiguration', 'load_config']
