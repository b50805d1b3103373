"""
Tests for configuration building, validation and YAML loading.
"""

import re

import pytest

from crawlgraph.utils.config import (
    ConfigManager, ConfigurationError, CrawlConfiguration, load_config
)


class TestCrawlConfiguration:

    def test_single_seed_string_becomes_list(self):
        assert CrawlConfiguration('http://a.test/').seed_urls == ['http://a.test/']

    def test_defaults(self):
        config = CrawlConfiguration(['http://a.test/'])

        assert config.depth_limit is None
        assert config.delay == 0.0
        assert not config.obey_robots_txt
        assert not config.discard_page_bodies
        assert config.workers == 4
        assert config.redirect_limit == 5

    def test_mutators_chain(self):
        selector = lambda page: page.links
        callback = lambda page: None

        config = (CrawlConfiguration('http://a.test/')
                  .skip_links_like(r'\.pdf$', re.compile('^/admin'))
                  .focus_crawl(selector)
                  .on_every_page(callback)
                  .on_pages_like('/news', '/blog', callback))

        assert [p.pattern for p in config.skip_link_patterns] == [r'\.pdf$', '^/admin']
        assert config.focus_selector is selector
        assert config.page_callbacks == [callback]
        assert [p.pattern for p in config.pattern_callbacks[0][0]] == ['/news', '/blog']

    def test_on_pages_like_needs_pattern_and_callback(self):
        with pytest.raises(ConfigurationError):
            CrawlConfiguration('http://a.test/').on_pages_like(lambda page: None)

    def test_locked_configuration_rejects_mutation(self):
        config = CrawlConfiguration('http://a.test/')
        config.lock()

        with pytest.raises(ConfigurationError):
            config.on_every_page(print)

        config.unlock()
        config.on_every_page(print)

    @pytest.mark.parametrize('kwargs', [
        dict(seed_urls=[]),
        dict(seed_urls=['not a url']),
        dict(seed_urls=['http://a.test/'], delay=-1),
        dict(seed_urls=['http://a.test/'], workers=0),
        dict(seed_urls=['http://a.test/'], depth_limit=-1),
        dict(seed_urls=['http://a.test/'], redirect_limit=-1),
        dict(seed_urls=['http://a.test/'], request_timeout=0),
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ConfigurationError):
            CrawlConfiguration(**kwargs).validate()

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    def test_from_dict(self):
        config = CrawlConfiguration.from_dict({
            'seed_urls': ['http://a.test/'],
            'depth_limit': 2,
            'skip_links_like': r'\.zip$',
        })

        assert config.depth_limit == 2
        assert [p.pattern for p in config.skip_link_patterns] == [r'\.zip$']

    def test_from_dict_unknown_option(self):
        with pytest.raises(ConfigurationError, match='max_pages'):
            CrawlConfiguration.from_dict({'seed_urls': ['http://a.test/'], 'max_pages': 3})


class TestConfigManager:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(
            "crawler:\n"
            "  seed_urls: [http://a.test/]\n"
            "  obey_robots_txt: true\n"
            "  skip_links_like: ['^/private']\n"
            "logging:\n"
            "  level: DEBUG\n"
            "storage:\n"
            "  type: file\n"
            "  file: {data_directory: /tmp/pages}\n"
        )

        config = load_config(path)

        assert config.crawler.obey_robots_txt
        assert config.crawler.skip_link_patterns[0].pattern == '^/private'
        assert config.logging.level == 'DEBUG'
        assert config.storage.type == 'file'
        assert config.monitoring.metrics_enabled

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / 'absent.yaml')

    def test_missing_crawler_section(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("logging:\n  level: INFO\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("crawler:\n  seed_urls: []\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unknown_storage_type(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("crawler:\n  seed_urls: [http://a.test/]\nstorage:\n  type: cassandra\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_config_property_before_load(self):
        with pytest.raises(ConfigurationError):
            ConfigManager('whatever.yaml').config
