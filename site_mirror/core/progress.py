"""
Publish/subscribe channel for job progress snapshots, keyed by job id.
"""

import asyncio
import logging
from collections import defaultdict

from site_mirror.core.jobs import ProgressSnapshot

log = logging.getLogger("site-mirror")


class Subscription:
    """Ordered stream of snapshots for one job.

    Iterate with ``async for``; iteration ends after the first terminal
    snapshot or once :meth:`close` is called.
    """

    def __init__(self, broadcaster: "ProgressBroadcaster", job_id: str) -> None:
        self.job_id = job_id
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[ProgressSnapshot | None] = asyncio.Queue()
        self._done = False

    @property
    def closed(self) -> bool:
        return self._done

    def push(self, snapshot: ProgressSnapshot | None) -> None:
        if not self._done:
            self._queue.put_nowait(snapshot)

    def close(self) -> None:
        """Stop the stream; the iterator finishes after queued snapshots."""
        self._broadcaster.unsubscribe(self)
        self.push(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ProgressSnapshot:
        if self._done:
            raise StopAsyncIteration
        snapshot = await self._queue.get()
        if snapshot is None:
            self._done = True
            raise StopAsyncIteration
        if snapshot.is_terminal:
            self._done = True
            self._broadcaster.unsubscribe(self)
        return snapshot

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ProgressBroadcaster:
    """Fan snapshots out to every subscription registered for a job.

    Delivery is fire-and-forget: :meth:`publish` never blocks.  Once a
    terminal snapshot has been delivered the job's subscriptions are
    dropped.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, job_id: str) -> Subscription:
        sub = Subscription(self, job_id)
        self._subscribers[job_id].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.job_id)
        if not subs:
            return
        if sub in subs:
            subs.remove(sub)
        if not subs:
            del self._subscribers[sub.job_id]

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))

    def publish(self, snapshot: ProgressSnapshot) -> None:
        subs = self._subscribers.get(snapshot.id)
        if not subs:
            return
        for sub in list(subs):
            sub.push(snapshot)
        if snapshot.is_terminal:
            self._subscribers.pop(snapshot.id, None)
            log.debug("Progress channel for %s closed (%s)", snapshot.id, snapshot.status.value)
