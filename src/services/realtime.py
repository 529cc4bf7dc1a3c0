"""Real-time presence subscriptions using Redis pub/sub."""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import redis.asyncio as aioredis

from src.config import get_settings
from src.services.presence import (
    CATALOG_CHANNEL,
    PresenceStore,
    change_channel,
    redis_client_options,
    split_path,
)

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class PresenceChange:
    """Full current value of a watched presence path."""

    path: str
    value: Any


@dataclass(frozen=True)
class CatalogChange:
    """A durable catalog mutation touching a vendor's category."""

    vendor_id: int
    category_id: int | None


WatchEvent = PresenceChange | CatalogChange


class ChangeInbox:
    """Pending change markers for one viewer, coalesced latest-wins.

    Marking a path that is already pending is a no-op, so a burst of
    notifications collapses into a single fresh read per path.
    """

    def __init__(self) -> None:
        self._pending: dict[str | CatalogChange, None] = {}
        self._ready = asyncio.Event()

    def mark(self, key: str | CatalogChange) -> None:
        self._pending[key] = None
        self._ready.set()

    def __len__(self) -> int:
        return len(self._pending)

    async def drain(self) -> list[str | CatalogChange]:
        """Wait for at least one pending marker, then take all of them."""
        await self._ready.wait()
        keys = list(self._pending)
        self._pending.clear()
        self._ready.clear()
        return keys


class PresenceWatcher:
    """Async Redis pub/sub watcher for one viewer's presence paths."""

    def __init__(self, store: PresenceStore) -> None:
        self.store = store
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.redis_url, **redis_client_options())
        return self._redis

    async def watch(self, paths: Sequence[str]) -> AsyncIterator[list[WatchEvent]]:
        """Subscribe to ``paths`` and yield batches of change events.

        The first batch holds the current value of every path. Each later batch
        holds one fresh value per path changed since the previous batch, plus
        any catalog changes.
        """
        roots = {split_path(path)[0] for path in paths}
        redis_conn = await self._get_redis()
        self._pubsub = redis_conn.pubsub()
        await self._pubsub.subscribe(*sorted(change_channel(root) for root in roots), CATALOG_CHANNEL)

        inbox = ChangeInbox()
        for path in paths:
            inbox.mark(path)
        pump = asyncio.create_task(self._pump(inbox, paths))

        try:
            while True:
                keys = await self._next_keys(inbox, pump)
                if keys is None:
                    return
                batch: list[WatchEvent] = []
                for key in keys:
                    if isinstance(key, CatalogChange):
                        batch.append(key)
                    else:
                        value = await asyncio.to_thread(self.store.get, key)
                        batch.append(PresenceChange(key, value))
                yield batch
        finally:
            if not pump.done():
                pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pump
            if self._pubsub:
                await self._pubsub.unsubscribe()

    async def _next_keys(
        self, inbox: ChangeInbox, pump: asyncio.Task
    ) -> list[str | CatalogChange] | None:
        """Wait for pending markers. None once the subscription has ended."""
        while True:
            if len(inbox):
                return await inbox.drain()
            if pump.done():
                # Re-raises a lost connection; a clean end just stops the stream
                pump.result()
                return None
            drain = asyncio.ensure_future(inbox.drain())
            done, _ = await asyncio.wait({drain, pump}, return_when=asyncio.FIRST_COMPLETED)
            if drain in done:
                return drain.result()
            drain.cancel()

    async def _pump(self, inbox: ChangeInbox, paths: Sequence[str]) -> None:
        """Move pub/sub notifications into the inbox."""
        async for message in self._pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                data = json.loads(message["data"])
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON in pub/sub message: {message['data']}")
                continue

            if message["channel"] == CATALOG_CHANNEL:
                vendor_id = data.get("vendor_id")
                if vendor_id is not None:
                    inbox.mark(CatalogChange(vendor_id, data.get("category_id")))
                continue

            try:
                changed_root = split_path(data["path"])[0]
            except (KeyError, TypeError, ValueError):
                # Unknown change, re-read everything
                changed_root = None
            for path in paths:
                if changed_root is None or split_path(path)[0] == changed_root:
                    inbox.mark(path)

    async def cleanup(self) -> None:
        """Clean up Redis connections."""
        if self._pubsub:
            await self._pubsub.close()
        if self._redis:
            await self._redis.close()
