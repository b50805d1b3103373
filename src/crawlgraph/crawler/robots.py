"""
robots.txt compliance with a per-host rule cache.
"""

import asyncio
import logging
from typing import Dict, Optional
from urllib.robotparser import RobotFileParser

from .urls import host_of, robots_url_for


class RobotsPolicy:
    """
    Answers "may this user-agent fetch this URL?".

    The first query for a host fetches its robots.txt through the crawl's
    transport; the parsed rules are kept for the rest of the run. Hosts whose
    robots.txt cannot be retrieved are treated as fully permissive.
    """

    def __init__(self, transport, user_agent: str):
        self.transport = transport
        self.user_agent = user_agent
        self.logger = logging.getLogger(__name__)

        self.robots_cache: Dict[str, Optional[RobotFileParser]] = {}
        self._host_locks: Dict[str, asyncio.Lock] = {}

        self.stats = {
            'robots_fetched': 0,
            'robots_unavailable': 0,
            'urls_blocked': 0
        }

    async def allowed(self, url: str) -> bool:
        """Check if URL can be fetched according to its host's robots.txt."""
        rules = await self._rules_for(url)
        if rules is None:
            return True

        allowed = rules.can_fetch(self.user_agent, url)
        if not allowed:
            self.stats['urls_blocked'] += 1
            self.logger.debug(f"robots.txt disallows {url}")
        return allowed

    async def crawl_delay(self, url: str) -> Optional[float]:
        """Crawl-delay requested by the host for our user-agent, if any."""
        rules = await self._rules_for(url)
        if rules is None:
            return None
        delay = rules.crawl_delay(self.user_agent)
        return float(delay) if delay is not None else None

    async def _rules_for(self, url: str) -> Optional[RobotFileParser]:
        host = host_of(url)
        if host in self.robots_cache:
            return self.robots_cache[host]

        lock = self._host_locks.setdefault(host, asyncio.Lock())
        async with lock:
            # Another worker may have fetched it while we waited
            if host not in self.robots_cache:
                self.robots_cache[host] = await self._fetch_rules(url)
        return self.robots_cache[host]

    async def _fetch_rules(self, url: str) -> Optional[RobotFileParser]:
        robots_url = robots_url_for(url)
        try:
            result = await self.transport.fetch(robots_url)
        except Exception as e:
            self.stats['robots_unavailable'] += 1
            self.logger.warning(f"Could not fetch {robots_url}: {e}")
            return None

        # Any non-200 answer, 401 and 403 included, allows everything.
        # RobotFileParser.read() would disallow all on 401/403.
        if result.error or result.status_code != 200 or result.content is None:
            self.stats['robots_unavailable'] += 1
            self.logger.info(f"No usable robots.txt at {robots_url} "
                             f"(status={result.status_code}, error={result.error}); allowing all")
            return None

        rules = RobotFileParser(robots_url)
        rules.parse(result.content.splitlines())
        self.stats['robots_fetched'] += 1
        self.logger.debug(f"Loaded robots.txt for {host_of(url)}")
        return rules

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
