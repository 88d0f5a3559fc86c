"""EventBus implementation for change notifications."""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import Notification, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[Notification], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for change notifications."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a previously subscribed handler."""
        ...

    async def publish(self, notification: Notification) -> None:
        """Deliver a notification to every subscriber of its topic."""
        ...

    async def emit(
        self,
        topic: Topic,
        event: str,
        payload: dict | None = None,
        room_id: str | None = None,
    ) -> None:
        """Build and publish a notification."""
        ...


class EventBus:
    """In-memory pub/sub event bus.

    Handlers run one after another in subscription order, so a notification
    is fully delivered before the publisher continues.
    """

    def __init__(self):
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a previously subscribed handler."""
        handlers = self._subscribers[topic]
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, notification: Notification) -> None:
        """Deliver a notification to every subscriber of its topic."""
        for handler in list(self._subscribers.get(notification.topic, [])):
            try:
                await handler(notification)
            except Exception as e:
                logger.error(
                    "Error in %s handler for %s: %s",
                    notification.topic.value,
                    notification.event,
                    e,
                    exc_info=True,
                )

    async def emit(
        self,
        topic: Topic,
        event: str,
        payload: dict | None = None,
        room_id: str | None = None,
    ) -> None:
        """Build and publish a notification."""
        await self.publish(
            Notification(
                topic=topic,
                event=event,
                payload=payload or {},
                timestamp=datetime.now(timezone.utc),
                room_id=room_id,
            )
        )
