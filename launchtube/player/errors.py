"""Exceptions raised by the player core."""


class PlayerError(Exception):
    """Base class for player errors."""


class InvalidRequest(PlayerError):
    """The caller asked for something the player cannot do (missing URL, empty playlist)."""


class LaunchFailed(PlayerError):
    """The mpv process could not be started."""


class TransportError(PlayerError):
    """The IPC channel to mpv could not be used."""


class TransportUnavailable(TransportError):
    """Socket or pipe not ready, or mpv already gone."""


class TransportTimeout(TransportError):
    """No (complete) reply arrived within the bounded wait."""
