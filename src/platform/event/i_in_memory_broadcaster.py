"""
In-memory Event Broadcaster Interface

Pub/sub port used to push inventory status changes to subscribers
(e.g. SSE endpoints) within the same process.
"""

from typing import Protocol

from anyio.streams.memory import MemoryObjectReceiveStream


class IInMemoryEventBroadcaster(Protocol):
    async def subscribe(self, *, topic: str) -> MemoryObjectReceiveStream[dict]:
        """
        Subscribe to updates for a topic

        Returns:
            MemoryObjectReceiveStream that will receive event dictionaries
        """
        ...

    async def broadcast(self, *, topic: str, event_data: dict) -> None:
        """
        Broadcast event to all subscribers of a topic

        Note:
            - Silently ignores if no subscribers exist
            - Drops event if subscriber stream is full (prevents blocking)
        """
        ...

    async def unsubscribe(self, *, topic: str, stream: MemoryObjectReceiveStream[dict]) -> None:
        """Unsubscribe and cleanup; safe to call with an unknown stream."""
        ...
