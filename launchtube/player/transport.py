"""
IPC transports for talking to mpv.

Two strategies implement the same four-method contract
(open / send_batch / read_until / close):

- UnixSocketTransport connects to the socket mpv creates with
  --input-ipc-server on Linux and macOS.
- NamedPipeTransport is used on Windows and inside WSL. Python on the WSL
  side has no client for a Windows named pipe, so open() and send_batch()
  only stage the outgoing lines and read_until() runs one PowerShell
  invocation that connects, writes everything and reads the replies.

The variant is chosen once per session with create_transport(). Each
handle lives for a single exchange; callers go through round_trip(), which
always closes it.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Collection, Protocol

from launchtube.config import PlayerConfig

from . import protocol
from .errors import TransportTimeout, TransportUnavailable

logger = logging.getLogger("launchtube.player")


class Transport(Protocol):
    """Contract shared by the transport variants."""

    kind: str

    @property
    def endpoint(self) -> str:
        """Value passed to mpv's --input-ipc-server."""
        ...

    def prepare(self) -> None:
        """Clean up before mpv is started (e.g. remove a stale socket)."""
        ...

    async def open(self) -> Any:
        """Open a handle. Raises TransportUnavailable."""
        ...

    async def send_batch(self, handle: Any, payload: str) -> None:
        """Send newline-delimited lines. Raises TransportUnavailable."""
        ...

    async def read_until(
        self, handle: Any, request_ids: Collection[int], timeout: float
    ) -> list[str]:
        """Read lines until every request id is answered. Raises TransportTimeout."""
        ...

    async def close(self, handle: Any) -> None:
        """Release the handle. A None handle is a no-op."""
        ...

    def terminate(self, process: Any) -> None:
        """Stop mpv when it cannot be asked to quit over IPC."""
        ...


# ==================== UNIX SOCKET ====================


@dataclass
class UnixSocketHandle:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter


class UnixSocketTransport:
    """Talks to mpv over its Unix domain socket."""

    kind = "unix"

    def __init__(self, socket_path: str, timeout: float = 0.5):
        """Initialize the transport.

        Args:
            socket_path: Path mpv is told to create (e.g. /tmp/launchtube-mpv.sock).
            timeout: Connect and drain timeout in seconds.
        """
        self.socket_path = socket_path
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return self.socket_path

    def prepare(self) -> None:
        """Remove a socket file left behind by a previous mpv."""
        path = Path(self.socket_path)
        if path.exists() or path.is_symlink():
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove stale socket {path}: {e}")

    async def open(self) -> UnixSocketHandle:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.socket_path), self.timeout
            )
        except FileNotFoundError as e:
            raise TransportUnavailable("Socket not found") from e
        except ConnectionRefusedError as e:
            raise TransportUnavailable("Connection refused") from e
        except asyncio.TimeoutError as e:
            raise TransportUnavailable("Connection timeout") from e
        except OSError as e:
            raise TransportUnavailable(f"Socket error: {e}") from e
        return UnixSocketHandle(reader, writer)

    async def send_batch(self, handle: UnixSocketHandle, payload: str) -> None:
        try:
            handle.writer.write(payload.encode("utf-8"))
            await asyncio.wait_for(handle.writer.drain(), self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportUnavailable("Write timeout") from e
        except OSError as e:
            raise TransportUnavailable(f"Socket error: {e}") from e

    async def read_until(
        self, handle: UnixSocketHandle, request_ids: Collection[int], timeout: float
    ) -> list[str]:
        """Read lines until every request id has a reply or mpv closes the socket.

        Event lines are returned too but do not count as replies.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        lines: list[str] = []
        pending = set(request_ids)

        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TransportTimeout(f"No reply for request ids {sorted(pending)}")
            try:
                raw = await asyncio.wait_for(handle.reader.readline(), remaining)
            except asyncio.TimeoutError as e:
                raise TransportTimeout(f"No reply for request ids {sorted(pending)}") from e
            except (OSError, ValueError) as e:
                raise TransportUnavailable(f"Read failed: {e}") from e

            if not raw:
                # mpv closed the connection (e.g. after quit)
                break
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                lines.append(line)
                pending.discard(protocol.reply_id(line))
        return lines

    async def close(self, handle: UnixSocketHandle | None) -> None:
        if handle is None:
            return
        handle.writer.close()
        try:
            await handle.writer.wait_closed()
        except OSError:
            pass

    def terminate(self, process: Any) -> None:
        try:
            process.terminate()
        except ProcessLookupError:
            pass


# ==================== NAMED PIPE (via PowerShell) ====================


PIPE_SCRIPT = r"""$ErrorActionPreference = 'Stop'
try {{
    $pipe = New-Object System.IO.Pipes.NamedPipeClientStream('.', '{pipe}', [System.IO.Pipes.PipeDirection]::InOut)
    $pipe.Connect({connect_ms})
    $writer = New-Object System.IO.StreamWriter($pipe)
    $reader = New-Object System.IO.StreamReader($pipe)
{writes}    $writer.Flush()
    $pending = New-Object 'System.Collections.Generic.HashSet[int]'
{waits}    while ($pending.Count -gt 0) {{
        $line = $reader.ReadLine()
        if ($null -eq $line) {{ break }}
        Write-Output $line
        if ($line -match '"request_id"\s*:\s*(\d+)') {{ [void]$pending.Remove([int]$Matches[1]) }}
    }}
    $pipe.Close()
}} catch {{
    [Console]::Error.WriteLine($_.Exception.Message)
    exit 1
}}
"""


def build_pipe_script(
    pipe_name: str, lines: list[str], request_ids: Collection[int], connect_ms: int
) -> str:
    """Render the PowerShell script for one named-pipe exchange.

    The helper echoes every line it reads and stops once each request id
    has been answered, so event lines never displace a reply.
    """
    # PowerShell single-quoted strings escape a quote by doubling it
    writes = "".join(
        "    $writer.WriteLine('{}')\n".format(line.replace("'", "''")) for line in lines
    )
    waits = "".join(f"    [void]$pending.Add({int(request_id)})\n" for request_id in request_ids)
    return PIPE_SCRIPT.format(
        pipe=pipe_name.replace("'", "''"),
        connect_ms=connect_ms,
        writes=writes,
        waits=waits,
    )


@dataclass
class PipeHandle:
    """Lines staged for the next helper invocation."""

    lines: list[str] = field(default_factory=list)


class NamedPipeTransport:
    """Talks to mpv's Windows named pipe through a PowerShell helper."""

    kind = "pipe"

    def __init__(
        self,
        pipe_name: str,
        helper: str = "powershell",
        connect_timeout: float = 0.5,
        helper_timeout: float = 3.0,
    ):
        """Initialize the transport.

        Args:
            pipe_name: Pipe name without the \\\\.\\pipe\\ prefix.
            helper: PowerShell executable ("powershell.exe" from WSL).
            connect_timeout: Pipe connect timeout inside the helper.
            helper_timeout: Upper bound for the whole helper invocation.
        """
        self.pipe_name = pipe_name
        self.helper = helper
        self.connect_timeout = connect_timeout
        self.helper_timeout = helper_timeout

    @property
    def endpoint(self) -> str:
        return rf"\\.\pipe\{self.pipe_name}"

    def prepare(self) -> None:
        # The pipe is owned by mpv and disappears with it
        pass

    async def open(self) -> PipeHandle:
        return PipeHandle()

    async def send_batch(self, handle: PipeHandle, payload: str) -> None:
        handle.lines.extend(line for line in payload.splitlines() if line.strip())

    async def read_until(
        self, handle: PipeHandle, request_ids: Collection[int], timeout: float
    ) -> list[str]:
        """Run the helper: write the staged lines, read until each request id is answered.

        The helper gets at least helper_timeout, since starting PowerShell
        alone can take longer than a socket read timeout.
        """
        script = build_pipe_script(
            self.pipe_name, handle.lines, request_ids, int(self.connect_timeout * 1000)
        )
        handle.lines = []

        try:
            proc = await asyncio.create_subprocess_exec(
                self.helper,
                "-NoProfile",
                "-NonInteractive",
                "-Command",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportUnavailable(f"Could not start {self.helper}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), max(timeout, self.helper_timeout)
            )
        except asyncio.TimeoutError as e:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise TransportTimeout(f"{self.helper} did not answer in time") from e

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise TransportUnavailable(f"Pipe helper failed: {message or proc.returncode}")

        return [
            line.strip()
            for line in stdout.decode("utf-8", errors="replace").splitlines()
            if line.strip()
        ]

    async def close(self, handle: PipeHandle | None) -> None:
        if handle is not None:
            handle.lines = []

    def terminate(self, process: Any) -> None:
        # Signals do not cross the Windows/WSL boundary reliably
        try:
            process.kill()
        except ProcessLookupError:
            pass


# ==================== SELECTION ====================


def is_wsl() -> bool:
    """True when running inside Windows Subsystem for Linux."""
    try:
        return "microsoft" in Path("/proc/version").read_text().lower()
    except OSError:
        return False


def detect_platform() -> str:
    """Return "windows", "wsl" or "posix"."""
    if sys.platform.startswith("win"):
        return "windows"
    if is_wsl():
        return "wsl"
    return "posix"


def create_transport(config: PlayerConfig, platform: str | None = None) -> Transport:
    """Pick the transport variant for this host."""
    platform = platform or detect_platform()
    if platform == "windows":
        return NamedPipeTransport(
            config.pipe_name,
            helper="powershell",
            connect_timeout=config.ipc_timeout,
            helper_timeout=config.helper_timeout,
        )
    if platform == "wsl":
        return NamedPipeTransport(
            config.pipe_name,
            helper="powershell.exe",
            connect_timeout=config.ipc_timeout,
            helper_timeout=config.helper_timeout,
        )
    return UnixSocketTransport(config.socket_path, timeout=config.ipc_timeout)


async def round_trip(
    transport: Transport, payload: str, request_ids: Collection[int], timeout: float
) -> list[str]:
    """Open, send, read and always close, in one call.

    Raises:
        TransportUnavailable: If the channel could not be opened or written.
        TransportTimeout: If a request id went unanswered in time.
    """
    handle = None
    try:
        handle = await transport.open()
        await transport.send_batch(handle, payload)
        return await transport.read_until(handle, request_ids, timeout)
    finally:
        await transport.close(handle)
