"""
External player module.

Launches mpv, tracks its position over JSON IPC and sends completion
callbacks when items finish or the player exits.

Example usage:
    >>> from launchtube.player import ExternalPlayer
    >>> player = ExternalPlayer()
    >>> await player.play("https://example.com/video.mp4", title="Video")
    >>> player.get_status()
    {'playing': True, 'paused': False, 'position': 12.3, 'duration': 600.0}
    >>> await player.stop()
"""

from .callbacks import CallbackDispatcher, render_body
from .controller import ExternalPlayer
from .errors import (
    InvalidRequest,
    LaunchFailed,
    PlayerError,
    TransportError,
    TransportTimeout,
    TransportUnavailable,
)
from .models import CallbackDescriptor, PlaylistItem, Session
from .poller import PositionPoller
from .protocol import PollResult, Query
from .supervisor import ProcessSupervisor, build_args
from .transitions import PlaylistTransitionDetector
from .transport import (
    NamedPipeTransport,
    Transport,
    UnixSocketTransport,
    create_transport,
    detect_platform,
)

__all__ = [
    # Facade
    "ExternalPlayer",
    # Models
    "CallbackDescriptor",
    "PlaylistItem",
    "Session",
    "PollResult",
    "Query",
    # Components
    "CallbackDispatcher",
    "render_body",
    "PositionPoller",
    "PlaylistTransitionDetector",
    "ProcessSupervisor",
    "build_args",
    # Transports
    "Transport",
    "UnixSocketTransport",
    "NamedPipeTransport",
    "create_transport",
    "detect_platform",
    # Errors
    "PlayerError",
    "InvalidRequest",
    "LaunchFailed",
    "TransportError",
    "TransportUnavailable",
    "TransportTimeout",
]
