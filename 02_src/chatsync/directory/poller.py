"""DirectoryPoller implementation."""

import asyncio
from typing import Awaitable, Callable

from ..errors import DirectoryError, Unauthorized
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import Topic
from .cache import DirectoryCache
from .client import IDirectoryClient

logger = get_logger(__name__)


UnauthorizedHandler = Callable[[], Awaitable[None]]


class DirectoryPoller:
    """Periodically refreshes rooms and online agents into the cache."""

    def __init__(
        self,
        client: IDirectoryClient,
        cache: DirectoryCache,
        event_bus: IEventBus,
        rooms_interval: float = 30.0,
        agents_interval: float = 20.0,
        on_unauthorized: UnauthorizedHandler | None = None,
    ):
        self._client = client
        self._cache = cache
        self._event_bus = event_bus
        self._rooms_interval = rooms_interval
        self._agents_interval = agents_interval
        self._on_unauthorized = on_unauthorized
        self._tasks: list[asyncio.Task] = []
        self._generation = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start both polling loops."""
        self.stop()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._poll(self.refresh_rooms, self._rooms_interval)),
            asyncio.create_task(self._poll(self.refresh_agents, self._agents_interval)),
        ]
        logger.info(
            "Directory polling started (rooms every %ss, agents every %ss)",
            self._rooms_interval,
            self._agents_interval,
        )

    def stop(self) -> None:
        """Cancel polling; responses still in flight are discarded."""
        self._running = False
        self._generation += 1
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()
        self._tasks = []

    async def refresh_rooms(self) -> bool:
        """Reload all room summaries. Returns False when the cache was kept."""
        generation = self._generation
        try:
            rooms = await self._client.list_rooms()
        except DirectoryError as e:
            logger.warning("Room refresh failed, keeping cached rooms: %s", e)
            return False

        if generation != self._generation:
            logger.debug("Discarding stale room refresh")
            return False

        self._cache.refresh(rooms)
        await self._event_bus.emit(Topic.DIRECTORY, "rooms_refreshed", {"count": len(rooms)})
        return True

    async def refresh_agents(self) -> bool:
        """Reload online agents. Returns False when the cache was kept."""
        generation = self._generation
        try:
            agents = await self._client.online_agents()
        except DirectoryError as e:
            logger.warning("Agent refresh failed, keeping cached agents: %s", e)
            return False

        if generation != self._generation:
            logger.debug("Discarding stale agent refresh")
            return False

        self._cache.replace_agents(agents)
        await self._event_bus.emit(Topic.DIRECTORY, "agents_refreshed", {"count": len(agents)})
        return True

    async def _poll(self, refresh: Callable[[], Awaitable[bool]], interval: float) -> None:
        """Background loop for one refresh kind."""
        while self._running:
            try:
                await asyncio.sleep(interval)
                await refresh()
            except asyncio.CancelledError:
                break
            except Unauthorized:
                logger.warning("Directory poll rejected credential, stopping")
                self.stop()
                if self._on_unauthorized:
                    await self._on_unauthorized()
                break
            except Exception as e:
                logger.error("Directory poll error: %s", e, exc_info=True)
