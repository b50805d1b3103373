"""
Shared fixtures: a fake web site served by aiohttp's test server.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from crawlgraph.crawler.fetcher import FetchResult


@dataclass
class FakePage:
    name: str
    links: List[str] = field(default_factory=list)
    hrefs: List[str] = field(default_factory=list)
    redirect: Optional[str] = None
    body: Optional[str] = None
    content_type: str = 'text/html'
    status: int = 200


class FakeSite:
    """
    Registry of pages served at ``/<name>``.

    ``links`` are names of other pages on the site and are rendered as
    absolute URLs; ``hrefs`` are rendered verbatim.
    """

    def __init__(self):
        self.pages: Dict[str, FakePage] = {}
        self.requests: List[str] = []
        self.user_agents: List[str] = []
        self.server: Optional[TestServer] = None

    def add(self, name: str, **kwargs) -> FakePage:
        page = FakePage(name, **kwargs)
        self.pages['/' + name] = page
        return page

    def url(self, name: str) -> str:
        return str(self.server.make_url('/' + name))

    def render(self, page: FakePage) -> str:
        anchors = [f'<a href="{self.url(link)}">{link}</a>' for link in page.links]
        anchors += [f'<a href="{href}">{href}</a>' for href in page.hrefs]
        return f"<html><head><title>Page {page.name}</title></head><body>{''.join(anchors)}</body></html>"

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(request.path_qs)
        self.user_agents.append(request.headers.get('User-Agent', ''))
        page = self.pages.get(request.path_qs)
        if page is None:
            return web.Response(status=404, text='not found', content_type='text/html')

        if page.redirect is not None:
            return web.Response(status=301, headers={'Location': self.url(page.redirect)})

        body = page.body if page.body is not None else self.render(page)
        return web.Response(status=page.status, text=body, content_type=page.content_type)

    async def start(self):
        app = web.Application()
        app.router.add_route('GET', '/{tail:.*}', self.handle)
        self.server = TestServer(app)
        await self.server.start_server()

    async def close(self):
        if self.server is not None:
            await self.server.close()


@pytest.fixture
async def site():
    fake_site = FakeSite()
    await fake_site.start()
    yield fake_site
    await fake_site.close()


class StubTransport:
    """In-memory transport returning canned FetchResults, or raising for registered errors."""

    def __init__(self, responses: Optional[Dict[str, FetchResult]] = None):
        self.responses = dict(responses or {})
        self.errors: Dict[str, Exception] = {}
        self.requests: List[str] = []

    def html(self, url: str, body: str, status: int = 200):
        self.responses[url] = FetchResult(url=url, status_code=status, content=body,
                                          headers={'Content-Type': 'text/html'},
                                          content_type='text/html')

    def text(self, url: str, body: str, status: int = 200, content_type: str = 'text/plain'):
        self.responses[url] = FetchResult(url=url, status_code=status, content=body,
                                          headers={'Content-Type': content_type},
                                          content_type=content_type)

    async def fetch(self, url: str) -> FetchResult:
        self.requests.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.responses:
            return self.responses[url]
        return FetchResult(url=url, status_code=404, content='', content_type='text/html')


@pytest.fixture
def transport():
    return StubTransport()
