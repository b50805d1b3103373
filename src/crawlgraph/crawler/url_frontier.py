"""
URL frontier: the queue of claimed-but-unprocessed URLs and the visited set
that makes every canonical URL schedulable exactly once.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Set


@dataclass
class FrontierEntry:
    """A claimed URL waiting to be fetched, with its discovery metadata."""
    url: str
    depth: int
    referer: Optional[str] = None
    redirects: int = 0
    discovered_time: float = field(default_factory=time.time)


class URLFrontier:
    """
    Work queue shared by the crawl workers.

    A URL enters the visited set at the moment it is claimed for enqueue and
    never leaves it, so concurrent discoveries of the same URL schedule it
    once. ``dequeue`` only reports exhaustion when the queue is empty *and* no
    dequeued entry is still being processed, since an in-flight page may yet
    publish more links.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        self._queue: Deque[FrontierEntry] = deque()
        self._visited: Set[str] = set()
        self._in_flight = 0
        self._stopped = False
        self._condition = asyncio.Condition()

    async def claim_and_enqueue(self, url: str, depth: int, referer: Optional[str] = None,
                                redirects: int = 0) -> bool:
        """
        Claim a URL and queue it for fetching.

        Returns:
            True if the URL was newly claimed, False if it had been claimed before
        """
        async with self._condition:
            if url in self._visited:
                return False

            self._visited.add(url)
            self._queue.append(FrontierEntry(url, depth, referer, redirects))
            self._condition.notify()

        self.logger.debug(f"Claimed {url} (depth={depth}, referer={referer})")
        return True

    async def dequeue(self) -> Optional[FrontierEntry]:
        """
        Wait for the next entry to process.

        Returns:
            The next FrontierEntry, or None once the crawl has drained or been stopped
        """
        async with self._condition:
            while True:
                if self._stopped:
                    return None

                if self._queue:
                    self._in_flight += 1
                    return self._queue.popleft()

                if self._in_flight == 0:
                    # Drained: release every sibling still waiting
                    self._condition.notify_all()
                    return None

                await self._condition.wait()

    async def task_done(self):
        """Mark a dequeued entry as fully processed (its links are published)."""
        async with self._condition:
            if self._in_flight <= 0:
                raise RuntimeError("task_done() called more times than entries were dequeued")
            self._in_flight -= 1
            if self._in_flight == 0 and not self._queue:
                self._condition.notify_all()

    async def stop(self):
        """Make every pending and future dequeue return None."""
        async with self._condition:
            self._stopped = True
            self._condition.notify_all()
        self.logger.info("URL frontier stopped")

    def is_claimed(self, url: str) -> bool:
        return url in self._visited

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_drained(self) -> bool:
        return not self._queue and self._in_flight == 0

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self._queue),
            'in_flight': self._in_flight,
            'total_claimed': len(self._visited)
        }
