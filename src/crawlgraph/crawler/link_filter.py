"""
Decides which of a page's links are eligible for the frontier.
"""

import logging
from typing import Iterable, List, Optional, Set

from .page import PageRecord
from .robots import RobotsPolicy
from .urls import canonicalize, hostname_of, path_of


class LinkFilterChain:
    """
    Filters applied, in order, to every candidate link of a page:

    1. focus selection (user selector, or all extracted links)
    2. domain containment against the seed hosts
    3. skip patterns, matched against the link's path
    4. depth limit
    5. robots.txt, when a RobotsPolicy is supplied

    Focus selection runs first so a selector can narrow or widen the
    candidate set but cannot escape the remaining filters.
    """

    def __init__(self, config, robots: Optional[RobotsPolicy] = None):
        self.config = config
        self.robots = robots
        self.logger = logging.getLogger(__name__)

        self.allowed_hosts: Set[str] = {
            hostname_of(url) for url in (canonicalize(seed) for seed in config.seed_urls) if url
        }

        self.stats = {
            'links_considered': 0,
            'rejected_domain': 0,
            'rejected_skip': 0,
            'rejected_depth': 0,
            'rejected_robots': 0
        }

    async def select_links(self, page: PageRecord) -> List[str]:
        """Links of ``page`` that should be claimed, in page order."""
        selected = []
        seen = set()

        for link in self._candidates(page):
            if link in seen:
                continue
            seen.add(link)
            self.stats['links_considered'] += 1

            if not self.in_domain(link) or self.is_skipped(link):
                continue

            if self.too_deep(page.depth + 1):
                self.stats['rejected_depth'] += 1
                continue

            if not await self.robots_allows(link):
                continue

            selected.append(link)

        return selected

    async def accepts_redirect(self, url: str) -> bool:
        """Redirect targets keep their origin's depth, so only domain, skip and robots apply."""
        return self.in_domain(url) and not self.is_skipped(url) and await self.robots_allows(url)

    def _candidates(self, page: PageRecord) -> Iterable[str]:
        if self.config.focus_selector is None:
            return page.links

        chosen = self.config.focus_selector(page) or []
        candidates = []
        for href in chosen:
            link = canonicalize(href, page.url)
            if link is None:
                self.logger.debug(f"Focus selector returned unusable link {href!r} on {page.url}")
                continue
            candidates.append(link)
        return candidates

    def in_domain(self, url: str) -> bool:
        if self.config.follow_other_domains or hostname_of(url) in self.allowed_hosts:
            return True
        self.stats['rejected_domain'] += 1
        return False

    def is_skipped(self, url: str) -> bool:
        path = path_of(url)
        if any(pattern.search(path) for pattern in self.config.skip_link_patterns):
            self.stats['rejected_skip'] += 1
            return True
        return False

    def too_deep(self, depth: int) -> bool:
        limit = self.config.depth_limit
        return limit is not None and depth > limit

    async def robots_allows(self, url: str) -> bool:
        if self.robots is None:
            return True
        if await self.robots.allowed(url):
            return True
        self.stats['rejected_robots'] += 1
        return False

    def get_stats(self):
        return self.stats.copy()
