"""
Playlist transition detection.

mpv's playlist-pos is polled, not pushed, so "item finished" is inferred
from an edge: the polled index differs from the last one processed. A
transition that happens and reverses between two polls is not seen.
"""

import logging

from .callbacks import CallbackDispatcher
from .models import Session

logger = logging.getLogger("launchtube.player")


class PlaylistTransitionDetector:
    """Turns playlist index changes into completion callbacks."""

    def __init__(self, dispatcher: CallbackDispatcher):
        self._dispatcher = dispatcher

    async def observe(self, session: Session, new_index: int | None) -> bool:
        """Process the playlist index from one poll round.

        If the index moved away from a previously reported item, that item
        is reported finished at the last known duration. Then the new index
        becomes current and the position restarts at 0.

        Indices outside the item list (entries appended inside mpv) are
        treated as not reported, as is anything observed after the session
        went inactive: the exit watcher owns the final report.

        Returns:
            True if a transition was processed.
        """
        previous = session.last_reported_index
        if not session.active or not session.is_playlist or not session.items:
            return False
        if new_index is None or new_index == previous:
            return False
        if not 0 <= new_index < len(session.items):
            logger.debug(f"Ignoring playlist index {new_index} outside {len(session.items)} items")
            return False

        finished = None
        if 0 <= previous < len(session.items):
            finished = session.items[previous]
            logger.info(f"Playlist advanced {previous} -> {new_index}, item {previous} finished")
        # Duration still unknown (very short item): keep the last polled position
        finished_at = session.duration if session.duration > 0 else session.position

        # An exit during the send must report the new item, not this one again
        session.playlist_index = new_index
        session.last_reported_index = new_index
        session.position = 0.0
        session.on_complete = session.items[new_index].on_complete

        if finished is not None and finished.on_complete is not None:
            await self._dispatcher.dispatch(finished.on_complete, finished_at, session.paused)
        return True
