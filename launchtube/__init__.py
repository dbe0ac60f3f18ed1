"""
launchtube - hands video streams to an external mpv player.

The player core (launchtube.player) supervises mpv, tracks playback over
its JSON IPC channel and notifies media servers when items finish.
"""

__version__ = "0.1.0"
