"""Presence store: live visibility flags kept in Redis.

The presence store holds three maps that are independent of the durable catalog:

    vendorStatus/{vendorId}                 -> bool
    vendorType/{vendorId}                   -> "stall" | "shop"
    categoryStatus/{vendorId}/{categoryId}  -> bool

It decides visibility only. Existence is always re-checked against the durable
store by the read paths, and a missing categoryStatus entry means "visible".
Every write publishes a change notification on ``presence:changes:{root}`` so
subscribers can re-read the full current value of the paths they watch.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from src.config import get_settings
from src.exceptions import UpstreamUnavailable
from src.models.enums import VendorType

logger = logging.getLogger(__name__)
settings = get_settings()

VENDOR_STATUS = "vendorStatus"
VENDOR_TYPE = "vendorType"
CATEGORY_STATUS = "categoryStatus"

FLAT_ROOTS = (VENDOR_STATUS, VENDOR_TYPE)
ROOTS = (VENDOR_STATUS, VENDOR_TYPE, CATEGORY_STATUS)

CATALOG_CHANNEL = "catalog:changes"


class CatalogEventType(StrEnum):
    """Event types for durable catalog mutations."""

    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"


def split_path(path: str) -> tuple[str, ...]:
    """Split and validate a presence path."""
    parts = tuple(part for part in path.strip("/").split("/") if part)
    if not parts or parts[0] not in ROOTS:
        raise ValueError(f"Unknown presence path: {path!r}")
    max_depth = 3 if parts[0] == CATEGORY_STATUS else 2
    if len(parts) > max_depth:
        raise ValueError(f"Presence path too deep: {path!r}")
    return parts


def is_leaf(parts: tuple[str, ...]) -> bool:
    """Check whether split path parts address a single flag."""
    return len(parts) == (3 if parts[0] == CATEGORY_STATUS else 2)


def change_channel(root: str) -> str:
    """Pub/sub channel carrying change notifications for a presence root."""
    return f"presence:changes:{root}"


def vendor_status_path(vendor_id: int | str) -> str:
    return f"{VENDOR_STATUS}/{vendor_id}"


def vendor_type_path(vendor_id: int | str) -> str:
    return f"{VENDOR_TYPE}/{vendor_id}"


def category_status_path(vendor_id: int | str, category_id: int | str | None = None) -> str:
    if category_id is None:
        return f"{CATEGORY_STATUS}/{vendor_id}"
    return f"{CATEGORY_STATUS}/{vendor_id}/{category_id}"


@dataclass(frozen=True)
class PresenceSnapshot:
    """Immutable view of the three presence maps at one point in time."""

    vendor_status: Mapping[str, Any] = field(default_factory=dict)
    vendor_type: Mapping[str, Any] = field(default_factory=dict)
    category_status: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def is_vendor_live(self, vendor_id: int | str) -> bool:
        return self.vendor_status.get(str(vendor_id)) is True

    def vendor_type_of(self, vendor_id: int | str) -> str | None:
        return self.vendor_type.get(str(vendor_id))

    def category_flag(self, vendor_id: int | str, category_id: int | str) -> Any:
        return self.category_status.get(str(vendor_id), {}).get(str(category_id))

    def is_category_visible(self, vendor_id: int | str, category_id: int | str) -> bool:
        # Absence means visible
        return self.category_flag(vendor_id, category_id) is not False

    def live_vendor_ids(self) -> list[str]:
        return [vendor_id for vendor_id, live in self.vendor_status.items() if live is True]

    def with_path(self, path: str, value: Any) -> "PresenceSnapshot":
        """Return a copy with ``value`` stored at ``path``. ``None`` removes the entry."""
        parts = split_path(path)
        root, rest = parts[0], parts[1:]

        if root in FLAT_ROOTS:
            current = dict(self.vendor_status if root == VENDOR_STATUS else self.vendor_type)
            if not rest:
                current = dict(value or {})
            elif value is None:
                current.pop(rest[0], None)
            else:
                current[rest[0]] = value
            key = "vendor_status" if root == VENDOR_STATUS else "vendor_type"
            return PresenceSnapshot(**{**self._as_kwargs(), key: current})

        categories = {vendor: dict(flags) for vendor, flags in self.category_status.items()}
        if not rest:
            categories = {vendor: dict(flags) for vendor, flags in (value or {}).items()}
        elif len(rest) == 1:
            if value:
                categories[rest[0]] = dict(value)
            else:
                categories.pop(rest[0], None)
        else:
            vendor_flags = categories.setdefault(rest[0], {})
            if value is None:
                vendor_flags.pop(rest[1], None)
            else:
                vendor_flags[rest[1]] = value
            if not vendor_flags:
                categories.pop(rest[0], None)
        return PresenceSnapshot(**{**self._as_kwargs(), "category_status": categories})

    def _as_kwargs(self) -> dict[str, Any]:
        return {
            "vendor_status": self.vendor_status,
            "vendor_type": self.vendor_type,
            "category_status": self.category_status,
        }


class PresenceStore(ABC):
    """Interface for a path-addressed presence store.

    Backends implement ``get``/``set``/``remove``/``publish``. The typed helpers
    below are the only places services write presence state from, so every
    visibility denormalization stays owned by this adapter.
    """

    @abstractmethod
    def get(self, path: str) -> Any:
        """Full current value at ``path``: a leaf, a map, or None."""

    @abstractmethod
    def set(self, path: str, value: Any) -> None:
        """Write a leaf value and notify subscribers of its root."""

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete a leaf or subtree and notify subscribers of its root."""

    @abstractmethod
    def publish(self, channel: str, message: dict) -> None:
        """Send a JSON message on a pub/sub channel."""

    def snapshot(self) -> PresenceSnapshot:
        """Read all three maps."""
        return PresenceSnapshot(
            vendor_status=self.get(VENDOR_STATUS) or {},
            vendor_type=self.get(VENDOR_TYPE) or {},
            category_status=self.get(CATEGORY_STATUS) or {},
        )

    def is_vendor_live(self, vendor_id: int) -> bool:
        return self.get(vendor_status_path(vendor_id)) is True

    def get_vendor_type(self, vendor_id: int) -> str | None:
        return self.get(vendor_type_path(vendor_id))

    def set_vendor_live(self, vendor_id: int, live: bool) -> None:
        self.set(vendor_status_path(vendor_id), bool(live))

    def set_vendor_type(self, vendor_id: int, vendor_type: VendorType) -> None:
        self.set(vendor_type_path(vendor_id), vendor_type.presence_value)

    def set_category_visibility(self, vendor_id: int, category_id: int, visible: bool) -> None:
        self.set(category_status_path(vendor_id, category_id), bool(visible))

    def clear_category(self, vendor_id: int, category_id: int) -> None:
        self.remove(category_status_path(vendor_id, category_id))

    def publish_catalog_event(
        self,
        vendor_id: int,
        event_type: CatalogEventType,
        category_id: int | None = None,
        data: dict | None = None,
    ) -> None:
        """Announce a durable catalog mutation to live views.

        Called from the catalog service after durable writes commit.
        """
        message = {
            "type": event_type,
            "vendor_id": vendor_id,
            "category_id": category_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "data": data or {},
        }
        try:
            self.publish(CATALOG_CHANNEL, message)
        except UpstreamUnavailable as e:
            # Live views re-check on the next presence change; don't fail the mutation
            logger.error(f"Failed to publish catalog event: {e}")


@contextmanager
def _redis_errors(action: str) -> Iterator[None]:
    try:
        yield
    except redis.RedisError as e:
        logger.error(f"Presence store {action} failed: {e}")
        raise UpstreamUnavailable("presence", f"Presence store unavailable: {e}") from e


def _decode(raw: str | bytes | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Invalid JSON in presence store: {raw!r}")
        return None


def _decode_map(raw: Mapping) -> dict[str, Any]:
    return {str(key): _decode(value) for key, value in raw.items()}


class RedisPresenceStore(PresenceStore):
    """Presence store backed by Redis hashes.

    Layout:
        presence:vendorStatus              hash  vendorId -> JSON bool
        presence:vendorType                hash  vendorId -> JSON string
        presence:categoryStatus:{vendorId} hash  categoryId -> JSON bool
        presence:categoryStatus            set   vendorIds having a category hash
    """

    key_prefix = "presence"

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def _flat_key(self, root: str) -> str:
        return f"{self.key_prefix}:{root}"

    def _category_key(self, vendor_id: str) -> str:
        return f"{self.key_prefix}:{CATEGORY_STATUS}:{vendor_id}"

    @property
    def _category_index_key(self) -> str:
        return f"{self.key_prefix}:{CATEGORY_STATUS}"

    def get(self, path: str) -> Any:
        parts = split_path(path)
        root, rest = parts[0], parts[1:]

        with _redis_errors("read"):
            if root in FLAT_ROOTS:
                if not rest:
                    return _decode_map(self.client.hgetall(self._flat_key(root)))
                return _decode(self.client.hget(self._flat_key(root), rest[0]))

            if len(rest) == 2:
                return _decode(self.client.hget(self._category_key(rest[0]), rest[1]))
            if len(rest) == 1:
                return _decode_map(self.client.hgetall(self._category_key(rest[0])))

            vendor_ids = sorted(str(v) for v in self.client.smembers(self._category_index_key))
            pipe = self.client.pipeline(transaction=False)
            for vendor_id in vendor_ids:
                pipe.hgetall(self._category_key(vendor_id))
            raw_maps = pipe.execute() if vendor_ids else []

        result = {}
        for vendor_id, raw in zip(vendor_ids, raw_maps, strict=True):
            if raw:
                result[vendor_id] = _decode_map(raw)
        return result

    def set(self, path: str, value: Any) -> None:
        parts = split_path(path)
        if not is_leaf(parts):
            raise ValueError(f"Only single flags can be set, got {path!r}")
        root = parts[0]

        with _redis_errors("write"):
            pipe = self.client.pipeline(transaction=True)
            if root in FLAT_ROOTS:
                pipe.hset(self._flat_key(root), parts[1], json.dumps(value))
            else:
                pipe.hset(self._category_key(parts[1]), parts[2], json.dumps(value))
                pipe.sadd(self._category_index_key, parts[1])
            pipe.publish(change_channel(root), json.dumps({"path": "/".join(parts)}))
            pipe.execute()
        logger.debug(f"Presence set {path} = {value!r}")

    def remove(self, path: str) -> None:
        parts = split_path(path)
        root, rest = parts[0], parts[1:]

        with _redis_errors("remove"):
            pipe = self.client.pipeline(transaction=True)
            if root in FLAT_ROOTS:
                if rest:
                    pipe.hdel(self._flat_key(root), rest[0])
                else:
                    pipe.delete(self._flat_key(root))
            elif len(rest) == 2:
                pipe.hdel(self._category_key(rest[0]), rest[1])
            elif len(rest) == 1:
                pipe.delete(self._category_key(rest[0]))
                pipe.srem(self._category_index_key, rest[0])
            else:
                for vendor_id in self.client.smembers(self._category_index_key):
                    pipe.delete(self._category_key(str(vendor_id)))
                pipe.delete(self._category_index_key)
            pipe.publish(change_channel(root), json.dumps({"path": "/".join(parts)}))
            pipe.execute()
        logger.debug(f"Presence removed {path}")

    def publish(self, channel: str, message: dict) -> None:
        with _redis_errors("publish"):
            self.client.publish(channel, json.dumps(message))
        logger.debug(f"Published {message.get('type')} to {channel}")


def redis_client_options() -> dict[str, Any]:
    """Connection options shared by the sync and async presence clients."""
    return {
        "decode_responses": True,
        "retry": Retry(ExponentialBackoff(), settings.presence_retry_attempts),
        "retry_on_error": [RedisConnectionError, RedisTimeoutError],
    }


# Synchronous Redis-backed store for use in API endpoints and tasks
_presence_store: RedisPresenceStore | None = None


def get_presence_store() -> PresenceStore:
    """Get the shared Redis presence store."""
    global _presence_store
    if _presence_store is None:
        _presence_store = RedisPresenceStore(
            redis.from_url(settings.redis_url, **redis_client_options())
        )
    return _presence_store
