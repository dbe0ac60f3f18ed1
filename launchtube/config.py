"""
Configuration for launchtube.

Values are read from environment variables once at import time. The player
core never reads these globals directly; it receives a PlayerConfig snapshot
so tests (and embedding applications) can build their own.
"""

import logging
import os
import shlex
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path


def env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable ("true", "1", "yes", "on")."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def env_float(name: str, default: float) -> float:
    """Read a float environment variable, falling back on bad input."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Common install locations checked when mpv is not on the PATH
WINDOWS_MPV_CANDIDATES = [
    r"C:\Program Files\mpv\mpv.exe",
    r"C:\Program Files (x86)\mpv\mpv.exe",
]


def detect_mpv_path() -> str:
    """Find the mpv executable, preferring the one on the PATH."""
    if shutil.which("mpv"):
        return "mpv"
    if sys.platform.startswith("win"):
        for candidate in WINDOWS_MPV_CANDIDATES:
            if Path(candidate).exists():
                return candidate
    return "mpv"


# ==================== PLAYER CONFIGURATION ====================

MPV_PATH = os.getenv("LAUNCHTUBE_MPV_PATH") or detect_mpv_path()
MPV_OPTIONS = os.getenv("LAUNCHTUBE_MPV_OPTIONS", "")
MPV_SOCKET_PATH = os.getenv("LAUNCHTUBE_MPV_SOCKET", "/tmp/launchtube-mpv.sock")
MPV_PIPE_NAME = os.getenv("LAUNCHTUBE_MPV_PIPE", "launchtube-mpv")

# Seconds between position polls
POLL_INTERVAL = env_float("LAUNCHTUBE_POLL_INTERVAL", 1.0)

# Socket connect/read timeout for one IPC exchange
IPC_TIMEOUT = env_float("LAUNCHTUBE_IPC_TIMEOUT", 0.5)

# Upper bound for one PowerShell helper invocation (named pipe transport)
HELPER_TIMEOUT = env_float("LAUNCHTUBE_HELPER_TIMEOUT", 3.0)

# Outbound completion/progress callbacks
CALLBACK_TIMEOUT = env_float("LAUNCHTUBE_CALLBACK_TIMEOUT", 10.0)
PROGRESS_INTERVAL = env_float("LAUNCHTUBE_PROGRESS_INTERVAL", 3.0)

# How long stop() waits for mpv to exit before killing it
STOP_TIMEOUT = env_float("LAUNCHTUBE_STOP_TIMEOUT", 3.0)

# ==================== SERVER CONFIGURATION ====================

HOST = os.getenv("LAUNCHTUBE_HOST", "127.0.0.1")
PORT = int(os.getenv("LAUNCHTUBE_PORT", "8765"))

# ==================== LOGGING ====================

DEBUG = env_bool("LAUNCHTUBE_DEBUG")
LOG_LEVEL = os.getenv("LAUNCHTUBE_LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()


@dataclass
class PlayerConfig:
    """Settings consumed by the player core.

    Attributes:
        mpv_path: Executable used to launch mpv.
        mpv_options: Extra arguments appended before the URLs.
        socket_path: Unix socket mpv is told to create.
        pipe_name: Named pipe used on Windows and WSL.
        poll_interval: Seconds between position polls.
        ipc_timeout: Timeout for one socket connect or read.
        helper_timeout: Timeout for one PowerShell helper invocation.
        callback_timeout: Timeout for outbound callback requests.
        progress_interval: Minimum seconds between progress callbacks.
        stop_timeout: Seconds to wait for mpv to exit on stop.
    """

    mpv_path: str = "mpv"
    mpv_options: list[str] = field(default_factory=list)
    socket_path: str = "/tmp/launchtube-mpv.sock"
    pipe_name: str = "launchtube-mpv"
    poll_interval: float = 1.0
    ipc_timeout: float = 0.5
    helper_timeout: float = 3.0
    callback_timeout: float = 10.0
    progress_interval: float = 3.0
    stop_timeout: float = 3.0

    @classmethod
    def from_env(cls) -> "PlayerConfig":
        """Build a config from the module-level environment settings."""
        return cls(
            mpv_path=MPV_PATH,
            mpv_options=parse_mpv_options(MPV_OPTIONS),
            socket_path=MPV_SOCKET_PATH,
            pipe_name=MPV_PIPE_NAME,
            poll_interval=POLL_INTERVAL,
            ipc_timeout=IPC_TIMEOUT,
            helper_timeout=HELPER_TIMEOUT,
            callback_timeout=CALLBACK_TIMEOUT,
            progress_interval=PROGRESS_INTERVAL,
            stop_timeout=STOP_TIMEOUT,
        )


def parse_mpv_options(options: str) -> list[str]:
    """Split a user-supplied mpv option string into arguments.

    Quoted values are kept together, e.g. '--ytdl-format="best[height<=1080]"'.
    Unbalanced quotes fall back to plain whitespace splitting.
    """
    if not options or not options.strip():
        return []
    try:
        return shlex.split(options)
    except ValueError:
        return options.split()


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the launchtube logger hierarchy and return the root one."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("launchtube")
    logger.setLevel(level or LOG_LEVEL)
    return logger
