import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Optional

import anyio
from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from app.core.auth import get_current_user
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

# queue -> household it listens for (None: user without household, only global events)
_subscribers: Dict[asyncio.Queue, Optional[int]] = {}


def subscribe(household_id: Optional[int]) -> asyncio.Queue:
    queue: asyncio.Queue = asyncio.Queue()
    _subscribers[queue] = household_id
    return queue


def unsubscribe(queue: asyncio.Queue) -> None:
    _subscribers.pop(queue, None)


async def broadcast(
    event_type: str,
    payload: Dict[str, Any],
    household_ids: Optional[Iterable[int]] = None,
) -> None:
    """Queue an event for every subscriber, or only for the given households."""
    targets = set(household_ids) if household_ids is not None else None

    dead = []
    for q, household_id in list(_subscribers.items()):
        if targets is not None and household_id not in targets:
            continue
        try:
            q.put_nowait({"event": event_type, "data": payload})
        except asyncio.QueueFull:
            dead.append(q)

    for q in dead:
        unsubscribe(q)


def notify(
    event_type: str,
    payload: Dict[str, Any],
    household_ids: Optional[Iterable[int]] = None,
) -> None:
    """
    Fire-and-forget publish from sync endpoints, which run in anyio worker threads.
    """
    try:
        anyio.from_thread.run(broadcast, event_type, payload, household_ids)
    except RuntimeError:
        # not inside a worker thread (CLI scripts, direct service calls)
        logger.debug("Dropped %s event: no event loop to publish on", event_type)


@router.get("/events")
async def sse_events(user: User = Depends(get_current_user)):
    queue = subscribe(user.household_id)

    async def generator():
        try:
            while True:
                msg = await queue.get()
                yield {
                    "event": msg["event"],
                    "data": json.dumps(msg["data"], ensure_ascii=False, default=str),
                }
        finally:
            unsubscribe(queue)

    return EventSourceResponse(generator())
