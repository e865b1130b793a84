"""
HTTP polling implementation of the push channel.

The data service exposes a change feed at ``GET {base_url}/changes``
taking the joined topics and the last cursor, and answering with
``{"changes": [...], "cursor": "..."}``.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import ChannelError
from .models import ChangeNotification

logger = logging.getLogger("live_updates.feed")


class PollingChangeFeed:
    """
    Push channel backed by a polled change feed.

    Requests run in a worker thread so the event loop never blocks.
    Failed polls are retried with exponential backoff; once retries are
    exhausted the poll loop logs the failure and tries again on the next
    interval.
    """

    def __init__(
        self,
        base_url: str,
        handler: Callable[[ChangeNotification], Any],
        poll_interval: float = 5.0,
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_backoff: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the feed.

        Args:
            base_url: Data service base URL
            handler: Receives every notification (usually LiveUpdateBridge.publish)
            poll_interval: Seconds between polls
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per poll before giving up
            retry_backoff: Exponential backoff multiplier in seconds
            session: requests session to use
        """
        self.base_url = base_url.rstrip("/")
        self._handler = handler
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._session = session or requests.Session()
        self._topics: Set[str] = set()
        self._cursor: Optional[str] = None
        self._task: Optional["asyncio.Task[None]"] = None

        self._fetch_changes = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=retry_backoff, max=30),
            retry=retry_if_exception_type(requests.RequestException),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(self._request_changes)

    def join(self, topic: str) -> None:
        self._topics.add(topic)

    def leave(self, topic: str) -> None:
        self._topics.discard(topic)

    @property
    def topics(self) -> List[str]:
        return sorted(self._topics)

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    def _request_changes(self, topics: List[str], cursor: Optional[str]) -> Dict[str, Any]:
        params = {"topics": ",".join(topics)}
        if cursor is not None:
            params["cursor"] = cursor
        response = self._session.get(
            f"{self.base_url}/changes",
            params=params,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def poll_once(self) -> int:
        """
        Fetch and deliver pending changes for the joined topics.

        Returns:
            Number of notifications delivered

        Raises:
            ChannelError: The feed could not be reached after retrying
        """
        if not self._topics:
            return 0

        try:
            data = await asyncio.to_thread(self._fetch_changes, self.topics, self._cursor)
        except requests.RequestException as e:
            raise ChannelError(f"Change feed unavailable at {self.base_url}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("changes", []), list):
            raise ChannelError(f"Unexpected change feed response from {self.base_url}: {data!r:.200}")

        delivered = 0
        for row in data.get("changes", []):
            if not isinstance(row, dict):
                logger.warning(f"Skipping malformed change row {row!r}")
                continue
            try:
                notification = ChangeNotification.from_dict(row)
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed change row {row!r}: {e}")
                continue
            self._handler(notification)
            delivered += 1

        self._cursor = data.get("cursor", self._cursor)
        return delivered

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except ChannelError as e:
                logger.error(f"{e}; retrying in {self.poll_interval}s")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info(f"Polling change feed at {self.base_url}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
