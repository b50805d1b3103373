"""
In-memory page map: the result of a crawl, keyed by canonical URL.
"""

from collections.abc import Mapping
from typing import Dict, Iterator, List

from ..crawler.page import PageRecord


class PageMap(Mapping):
    """
    Mapping of canonical URL -> PageRecord with a few link-graph queries.

    Exactly one record may be added per URL; the scheduler's claim step
    guarantees that, and ``add`` enforces it.
    """

    def __init__(self):
        self._pages: Dict[str, PageRecord] = {}

    def add(self, page: PageRecord):
        if page.url in self._pages:
            raise ValueError(f"A page record for {page.url} already exists")
        self._pages[page.url] = page

    def __getitem__(self, url: str) -> PageRecord:
        return self._pages[url]

    def __iter__(self) -> Iterator[str]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __repr__(self) -> str:
        return f"<PageMap pages={len(self._pages)}>"

    def pages_linking_to(self, url: str) -> List[PageRecord]:
        """Crawled pages that contain a link to ``url``."""
        return [page for page in self._pages.values() if url in page.links]

    def urls_linking_to(self, url: str) -> List[str]:
        return [page.url for page in self.pages_linking_to(url)]

    def redirect_chain(self, url: str) -> List[PageRecord]:
        """Records visited by following ``redirected_to`` from ``url``, starting with ``url`` itself."""
        chain = []
        seen = set()
        current = self._pages.get(url)
        while current is not None and current.url not in seen:
            chain.append(current)
            seen.add(current.url)
            if current.redirected_to is None:
                break
            current = self._pages.get(current.redirected_to)
        return chain

    def roots(self) -> List[PageRecord]:
        """Pages with no referer: the seeds and any redirect targets of seeds."""
        return [page for page in self._pages.values() if page.referer is None]

    def failed(self) -> List[PageRecord]:
        return [page for page in self._pages.values() if page.fetch_error is not None]

    def to_dict(self) -> Dict[str, dict]:
        return {url: page.to_dict() for url, page in self._pages.items()}
