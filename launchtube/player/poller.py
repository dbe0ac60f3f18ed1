"""
Position polling.

Once a second (by default) the poller sends the four property queries in
one batch, applies whatever came back to the Session, and hands the
playlist index to the transition detector. A failed round changes nothing;
the loop only ends when the session is no longer active.
"""

import asyncio
import logging
import time
from typing import Callable

from . import protocol
from .callbacks import CallbackDispatcher
from .errors import TransportError
from .models import Session
from .protocol import PollResult
from .transitions import PlaylistTransitionDetector
from .transport import round_trip

logger = logging.getLogger("launchtube.player")


async def query_state(session: Session, timeout: float) -> PollResult | None:
    """Run one batched property query over the session's transport.

    Returns:
        The decoded values, or None if the transport failed.
    """
    if session.transport is None:
        return None
    queries = protocol.poll_queries()
    try:
        lines = await round_trip(
            session.transport,
            protocol.encode_batch(queries),
            [query.request_id for query in queries],
            timeout,
        )
    except TransportError as e:
        logger.debug(f"IPC query failed: {e}")
        return None
    return protocol.collect(lines)


def apply_result(session: Session, result: PollResult) -> None:
    """Copy reported values onto the session; unreported fields are kept."""
    if result.duration is not None:
        session.set_duration(result.duration)
    if result.position is not None:
        session.set_position(result.position)
    if result.paused is not None:
        session.paused = result.paused


class PositionPoller:
    """Runs one polling task per session."""

    def __init__(
        self,
        detector: PlaylistTransitionDetector,
        dispatcher: CallbackDispatcher,
        interval: float = 1.0,
        timeout: float = 0.5,
        progress_interval: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the poller.

        Args:
            detector: Receives each round's playlist index.
            dispatcher: Used for progress callbacks.
            interval: Seconds to sleep before each round.
            timeout: Read timeout for one round.
            progress_interval: Minimum seconds between progress callbacks.
            clock: Monotonic clock, injectable for tests.
        """
        self._detector = detector
        self._dispatcher = dispatcher
        self.interval = interval
        self.timeout = timeout
        self.progress_interval = progress_interval
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    def start(self, session: Session) -> asyncio.Task:
        """Start polling for a session and return the task."""
        task = asyncio.create_task(self.run(session))
        session.poll_task = task
        return task

    async def run(self, session: Session) -> None:
        """Poll until the session goes inactive."""
        while True:
            await asyncio.sleep(self.interval)
            if not session.active:
                break
            await self.poll_once(session)
        logger.debug("Position polling stopped")

    async def poll_once(self, session: Session) -> bool:
        """Run one round.

        Returns:
            False if the transport failed and nothing was updated.
        """
        result = await query_state(session, self.timeout)
        if result is None:
            return False

        apply_result(session, result)
        await self._detector.observe(session, result.playlist_index)
        self._maybe_report_progress(session)
        return True

    async def drain(self) -> None:
        """Wait for progress callbacks still in flight."""
        tasks = [task for task in self._background if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _maybe_report_progress(self, session: Session) -> None:
        if session.on_progress is None or not session.active:
            return
        now = self._clock()
        if now - session.last_progress_at < self.progress_interval:
            return
        session.last_progress_at = now

        # Progress is fire-and-forget so a slow endpoint never delays a round
        task = asyncio.create_task(
            self._dispatcher.dispatch(session.on_progress, session.position, session.paused)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
