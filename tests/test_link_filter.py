"""
Tests for the link filter chain.
"""

import pytest

from crawlgraph.crawler.link_filter import LinkFilterChain
from crawlgraph.crawler.page import PageRecord
from crawlgraph.crawler.robots import RobotsPolicy
from crawlgraph.utils.config import CrawlConfiguration


pytestmark = pytest.mark.asyncio

SEED = 'http://site.test/'


def page_with(*links, depth=0, url=SEED):
    return PageRecord(url=url, depth=depth, links=tuple(links), content_type='text/html')


class TestLinkFilterChain:

    async def test_domain_containment(self):
        chain = LinkFilterChain(CrawlConfiguration(SEED))

        selected = await chain.select_links(page_with('http://site.test/a', 'http://elsewhere.test/b'))

        assert selected == ['http://site.test/a']
        assert chain.get_stats()['rejected_domain'] == 1

    async def test_any_seed_host_is_in_domain(self):
        chain = LinkFilterChain(CrawlConfiguration([SEED, 'http://second.test:8080/']))

        selected = await chain.select_links(page_with(
            'http://second.test:8080/x', 'http://third.test/x'
        ))

        assert selected == ['http://second.test:8080/x']

    async def test_domain_ignores_port(self):
        chain = LinkFilterChain(CrawlConfiguration('http://second.test:8080/'))

        selected = await chain.select_links(page_with(
            'http://second.test/x', 'https://second.test:8443/y'
        ))

        assert selected == ['http://second.test/x', 'https://second.test:8443/y']
        assert chain.get_stats()['rejected_domain'] == 0

    async def test_follow_other_domains(self):
        chain = LinkFilterChain(CrawlConfiguration(SEED, follow_other_domains=True))

        assert await chain.select_links(page_with('http://elsewhere.test/b')) == ['http://elsewhere.test/b']

    async def test_skip_patterns_match_path_only(self):
        config = CrawlConfiguration('http://site1.test/').skip_links_like(r'1', r'\.pdf$')
        chain = LinkFilterChain(config)

        selected = await chain.select_links(page_with(
            'http://site1.test/1', 'http://site1.test/2', 'http://site1.test/doc.pdf',
            url='http://site1.test/'
        ))

        assert selected == ['http://site1.test/2']

    async def test_depth_limit_rejects_at_discovery(self):
        chain = LinkFilterChain(CrawlConfiguration(SEED, depth_limit=2))

        assert await chain.select_links(page_with('http://site.test/a', depth=1)) == ['http://site.test/a']
        assert await chain.select_links(page_with('http://site.test/b', depth=2)) == []

    async def test_depth_limit_zero_crawls_only_seeds(self):
        chain = LinkFilterChain(CrawlConfiguration(SEED, depth_limit=0))

        assert await chain.select_links(page_with('http://site.test/a')) == []

    async def test_focus_selector_replaces_links(self):
        config = CrawlConfiguration(SEED).focus_crawl(lambda page: ['/chosen', 'http://elsewhere.test/x'])
        chain = LinkFilterChain(config)

        selected = await chain.select_links(page_with('http://site.test/a'))

        assert selected == ['http://site.test/chosen']

    async def test_focus_selector_returning_none(self):
        chain = LinkFilterChain(CrawlConfiguration(SEED).focus_crawl(lambda page: None))

        assert await chain.select_links(page_with('http://site.test/a')) == []

    async def test_robots_consulted_last(self, transport):
        transport.text('http://site.test/robots.txt', 'User-agent: *\nDisallow: /secret')
        chain = LinkFilterChain(CrawlConfiguration(SEED), RobotsPolicy(transport, 'bot'))

        selected = await chain.select_links(page_with(
            'http://site.test/open', 'http://site.test/secret', 'http://elsewhere.test/secret'
        ))

        assert selected == ['http://site.test/open']
        assert chain.get_stats()['rejected_robots'] == 1
        # off-domain links never trigger a robots.txt fetch
        assert transport.requests == ['http://site.test/robots.txt']

    async def test_redirect_targets_ignore_depth(self):
        config = CrawlConfiguration(SEED, depth_limit=0).skip_links_like('^/skipped')
        chain = LinkFilterChain(config)

        assert await chain.accepts_redirect('http://site.test/moved')
        assert not await chain.accepts_redirect('http://site.test/skipped/x')
        assert not await chain.accepts_redirect('http://elsewhere.test/moved')
