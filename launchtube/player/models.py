"""
Data models for the player core.

These dataclasses describe what is being played (items and their callback
descriptors) and the mutable state of the single playback session.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidRequest

# last_reported_index before any playlist position has been observed
NO_ITEM_REPORTED = -1


@dataclass(frozen=True)
class CallbackDescriptor:
    """Outbound HTTP notification for one item.

    Attributes:
        url: Target URL.
        method: HTTP method, POST unless given.
        headers: Header name to value mapping.
        body_template: Any JSON-serializable value. String values may contain
            the ${position}, ${positionTicks} and ${isPaused} tokens.
    """

    url: str | None
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body_template: Any = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "CallbackDescriptor | None":
        """Build a descriptor from its wire form (url, method, headers, bodyTemplate).

        Returns:
            The descriptor, or None when data is empty.

        Raises:
            InvalidRequest: If data is not an object or headers is not an object.
        """
        if not data:
            return None
        if not isinstance(data, dict):
            raise InvalidRequest("callback descriptor must be an object")

        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise InvalidRequest("callback headers must be an object")

        return cls(
            url=data.get("url"),
            method=(data.get("method") or "POST").upper(),
            headers={str(k): str(v) for k, v in headers.items()},
            body_template=data.get("bodyTemplate"),
        )


@dataclass
class PlaylistItem:
    """One playable entry."""

    url: str
    title: str | None = None
    item_id: str | None = None
    on_complete: CallbackDescriptor | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PlaylistItem":
        """Build an item from its wire form (url, title, itemId, onComplete)."""
        if not isinstance(data, dict):
            raise InvalidRequest("playlist item must be an object")
        url = data.get("url")
        if not url or not isinstance(url, str):
            raise InvalidRequest("playlist item url is required")
        return cls(
            url=url,
            title=data.get("title"),
            item_id=data.get("itemId"),
            on_complete=CallbackDescriptor.from_dict(data.get("onComplete")),
        )


@dataclass
class Session:
    """State of the single in-flight playback.

    The exit watcher, the poller and the callback dispatcher all receive
    the same Session object. `active` is the shared liveness flag: it goes
    False on stop() or when mpv exits, and the poller exits on seeing it.

    Attributes:
        items: Items passed to mpv, in order. Single-item playback holds one.
        is_playlist: False for play(), True for play_playlist().
        position: Elapsed seconds of the current item.
        duration: Length of the current item in seconds, 0 until known.
        paused: Last polled pause state.
        playlist_index: Current mpv playlist index, or None.
        last_reported_index: Index whose start has been processed.
        on_complete: Completion target for the item currently playing.
        on_progress: Optional periodic progress descriptor.
        process: The mpv process, None once it has exited.
        transport: IPC transport selected when the session started.
        active: Liveness flag shared by poller and exit watcher.
    """

    items: list[PlaylistItem]
    is_playlist: bool = False
    position: float = 0.0
    duration: float = 0.0
    paused: bool = False
    playlist_index: int | None = None
    last_reported_index: int = NO_ITEM_REPORTED
    on_complete: CallbackDescriptor | None = None
    on_progress: CallbackDescriptor | None = None
    process: Any = None
    transport: Any = field(default=None, repr=False)
    active: bool = False
    last_progress_at: float = 0.0
    poll_task: asyncio.Task | None = field(default=None, repr=False)
    exit_task: asyncio.Task | None = field(default=None, repr=False)

    def set_duration(self, value: float) -> None:
        """Record a polled duration, ignoring negative values."""
        if value >= 0:
            self.duration = value
            self.set_position(self.position)

    def set_position(self, value: float) -> None:
        """Record a position, clamped to [0, duration] once duration is known."""
        value = max(0.0, value)
        if self.duration > 0:
            value = min(value, self.duration)
        self.position = value

    def to_status(self) -> dict:
        """Status snapshot in the shape the HTTP API returns."""
        if not self.active:
            return {"playing": False}
        status = {
            "playing": True,
            "paused": self.paused,
            "position": self.position,
            "duration": self.duration,
        }
        if self.is_playlist:
            status["playlistPosition"] = self.playlist_index if self.playlist_index is not None else 0
            status["playlistCount"] = len(self.items)
        return status
