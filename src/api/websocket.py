"""WebSocket endpoint for live browse views."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.database import SessionLocal
from src.exceptions import ValidationError
from src.services.browse import BrowseResolver, LiveBrowseView, ViewSelector
from src.services.catalog_repository import CatalogRepository
from src.services.presence import CATEGORY_STATUS, VENDOR_STATUS, VENDOR_TYPE, get_presence_store
from src.services.realtime import PresenceWatcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ws", tags=["websocket"])

WATCHED_PATHS = (VENDOR_STATUS, VENDOR_TYPE, CATEGORY_STATUS)


async def apply_in_thread(pending: set[asyncio.Future], func: Callable[..., Any], *args) -> Any:
    """Run ``func`` in a worker thread that outlives cancellation of the caller.

    The thread's future stays in ``pending`` until it finishes, so the owner of
    any shared resource (the viewer's DB session) can wait on it before release.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    pending.add(future)
    future.add_done_callback(pending.discard)
    return await asyncio.shield(future)


@router.websocket("/browse")
async def websocket_browse(
    websocket: WebSocket,
    view: str = Query("all"),
    vendor_type: str | None = Query(None, alias="vendorType"),
    vendor_id: int | None = Query(None, alias="vendorId"),
    category_id: int | None = Query(None, alias="categoryId"),
) -> None:
    """Stream a viewer's visible food items.

    Sends one ``snapshot`` message with every visible item, then ``patch``
    messages with the items that entered or left the view. Each connection owns
    its view; closing it cancels only this viewer's subscription and reads.
    """
    try:
        selector = ViewSelector.build(view, vendor_type, vendor_id, category_id)
    except ValidationError as e:
        await websocket.close(code=4400, reason=e.message)
        return

    # Manual DB session for WebSocket (can't use Depends normally)
    db = SessionLocal()
    applying: set[asyncio.Future] = set()
    watcher = PresenceWatcher(get_presence_store())
    live_view = LiveBrowseView(BrowseResolver(CatalogRepository(db)), selector)

    try:
        await websocket.accept()
        logger.info(f"Browse viewer connected: view={selector.view}")

        async def handle_updates() -> None:
            """Apply presence batches to the view and forward the patches."""
            first = True
            async with contextlib.aclosing(watcher.watch(WATCHED_PATHS)) as batches:
                async for batch in batches:
                    patch = await apply_in_thread(applying, live_view.apply, batch)
                    if first:
                        await websocket.send_json(
                            {"type": "snapshot", "items": [asdict(i) for i in live_view.items]}
                        )
                        first = False
                    elif not patch.is_empty:
                        await websocket.send_json(
                            {
                                "type": "patch",
                                "added": [asdict(i) for i in patch.added],
                                "removed": [asdict(i) for i in patch.removed],
                            }
                        )

        async def handle_ping() -> None:
            """Send periodic pings to keep connection alive."""
            while True:
                await asyncio.sleep(30)
                await websocket.send_json({"type": "ping"})

        async def handle_client() -> None:
            """Handle incoming messages from client (pong responses)."""
            while True:
                data = await websocket.receive_json()
                if data.get("type") == "pong":
                    continue  # Keepalive acknowledgment

        tasks = [
            asyncio.create_task(handle_updates()),
            asyncio.create_task(handle_ping()),
            asyncio.create_task(handle_client()),
        ]
        # The first handler to finish (usually a disconnect) ends this viewer
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
                logger.error(f"Browse viewer error: {task.exception()}")

    except WebSocketDisconnect:
        logger.info("Browse viewer disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}", exc_info=True)
    finally:
        await asyncio.gather(*applying, return_exceptions=True)
        db.close()
        await watcher.cleanup()
