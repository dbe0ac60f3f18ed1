"""
High-level player controller.

ExternalPlayer is what the rest of the application talks to: it validates
play requests, turns wire-format descriptors into models, and wires the
transport, poller, transition detector, dispatcher and supervisor together
for one playback session at a time.
"""

import logging
from typing import Any, Callable, Sequence

from launchtube.config import PlayerConfig

from .callbacks import CallbackDispatcher
from .errors import InvalidRequest
from .models import CallbackDescriptor, PlaylistItem, Session
from .poller import PositionPoller
from .supervisor import ExitHook, Launcher, ProcessSupervisor
from .transitions import PlaylistTransitionDetector
from .transport import Transport

logger = logging.getLogger("launchtube.player")


def _descriptor(value: CallbackDescriptor | dict | None) -> CallbackDescriptor | None:
    if value is None or isinstance(value, CallbackDescriptor):
        return value
    return CallbackDescriptor.from_dict(value)


def _item(value: PlaylistItem | dict) -> PlaylistItem:
    if isinstance(value, PlaylistItem):
        return value
    return PlaylistItem.from_dict(value)


class ExternalPlayer:
    """Plays URLs in mpv and reports where playback ended.

    Only one session exists at a time; every play request replaces the
    previous one. Collaborators can be injected for testing.
    """

    def __init__(
        self,
        config: PlayerConfig | None = None,
        dispatcher: CallbackDispatcher | None = None,
        transport_factory: Callable[[], Transport] | None = None,
        launcher: Launcher | None = None,
        on_exit: ExitHook | None = None,
    ):
        """Initialize the player.

        Args:
            config: Player settings. Defaults to PlayerConfig.from_env().
            dispatcher: Callback dispatcher. Defaults to one using httpx.
            transport_factory: Returns the IPC transport for a new session.
            launcher: Replacement for asyncio.create_subprocess_exec.
            on_exit: Called after a session ends (e.g. to show the launcher UI again).
        """
        self.config = config or PlayerConfig.from_env()
        self._dispatcher = dispatcher or CallbackDispatcher(timeout=self.config.callback_timeout)
        detector = PlaylistTransitionDetector(self._dispatcher)
        poller = PositionPoller(
            detector,
            self._dispatcher,
            interval=self.config.poll_interval,
            timeout=self.config.ipc_timeout,
            progress_interval=self.config.progress_interval,
        )
        self._supervisor = ProcessSupervisor(
            self.config,
            self._dispatcher,
            poller,
            transport_factory=transport_factory,
            launcher=launcher,
            on_exit=on_exit,
        )

    @property
    def session(self) -> Session | None:
        """The current session, or None when idle."""
        return self._supervisor.session

    def is_playing(self) -> bool:
        """True while mpv is running (paused counts as playing)."""
        return self._supervisor.is_running()

    async def play(
        self,
        url: str,
        title: str | None = None,
        start_position: float = 0.0,
        on_complete: CallbackDescriptor | dict | None = None,
        on_progress: CallbackDescriptor | dict | None = None,
    ) -> Session:
        """Play a single URL, replacing any current playback.

        Args:
            url: File path or URL for mpv.
            title: Optional window title.
            start_position: Seconds to start from.
            on_complete: Callback sent when mpv exits.
            on_progress: Callback sent periodically while playing.

        Returns:
            The new session.

        Raises:
            InvalidRequest: If url is missing or a descriptor is malformed.
            LaunchFailed: If mpv could not be started.
        """
        if not url or not isinstance(url, str):
            raise InvalidRequest("url is required")

        logger.info(f"Playing {url}")
        item = PlaylistItem(url=url, title=title, on_complete=_descriptor(on_complete))
        return await self._supervisor.start(
            [item],
            start_position=max(0.0, start_position or 0.0),
            title=title,
            on_progress=_descriptor(on_progress),
        )

    async def play_playlist(
        self,
        items: Sequence[PlaylistItem | dict],
        start_position: float = 0.0,
    ) -> Session:
        """Play items in order as one mpv playlist.

        Each item's completion callback is sent when mpv moves past it, and
        the last item reached is reported when mpv exits.

        Raises:
            InvalidRequest: If items is empty or an item has no url.
            LaunchFailed: If mpv could not be started.
        """
        if not items:
            raise InvalidRequest("items array is required")
        playlist = [_item(item) for item in items]

        logger.info(f"Playing playlist of {len(playlist)} items")
        return await self._supervisor.start(
            playlist,
            start_position=max(0.0, start_position or 0.0),
            is_playlist=True,
        )

    def get_status(self) -> dict[str, Any]:
        """Playback status: {"playing": False} when idle."""
        session = self._supervisor.session
        if session is None:
            return {"playing": False}
        return session.to_status()

    async def stop(self) -> None:
        """Stop playback. Does nothing when idle."""
        await self._supervisor.stop()
