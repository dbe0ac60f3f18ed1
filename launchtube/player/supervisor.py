"""
Process supervision for the external mpv player.

The ProcessSupervisor owns the one mpv process: it builds the command
line, launches it, forwards its output to logging, watches for it to
exit, and shuts it down (politely over IPC first, then by signal).
"""

import asyncio
import inspect
import logging
import shlex
from typing import Any, Awaitable, Callable, Sequence

from launchtube.config import PlayerConfig

from . import protocol
from .callbacks import CallbackDispatcher
from .errors import InvalidRequest, LaunchFailed, TransportError
from .models import CallbackDescriptor, PlaylistItem, Session
from .poller import PositionPoller, apply_result, query_state
from .transport import Transport, create_transport, round_trip

logger = logging.getLogger("launchtube.player")
mpv_logger = logging.getLogger("launchtube.mpv")

Launcher = Callable[..., Awaitable[Any]]
ExitHook = Callable[[], Any]


def build_args(
    endpoint: str,
    items: Sequence[PlaylistItem],
    start_position: float = 0.0,
    title: str | None = None,
    extra_options: Sequence[str] = (),
) -> list[str]:
    """Build mpv's argument list (without the executable).

    Order: fullscreen, IPC endpoint, start offset, title, extra options,
    then the URLs.
    """
    args = [
        "--fullscreen",
        f"--input-ipc-server={endpoint}",
    ]
    if start_position > 0:
        args.append(f"--start={start_position:.1f}")
    if title:
        args.append(f"--title={title}")
    args.extend(extra_options)
    args.extend(item.url for item in items)
    return args


class ProcessSupervisor:
    """Starts, watches and stops the single mpv process.

    The transport factory and process launcher can be injected for testing.
    """

    def __init__(
        self,
        config: PlayerConfig,
        dispatcher: CallbackDispatcher,
        poller: PositionPoller,
        transport_factory: Callable[[], Transport] | None = None,
        launcher: Launcher | None = None,
        on_exit: ExitHook | None = None,
    ):
        """Initialize the supervisor.

        Args:
            config: Player settings.
            dispatcher: Sends the final completion callback.
            poller: Started for every new session.
            transport_factory: Returns the transport for a new session.
                Defaults to create_transport(config).
            launcher: Coroutine function with the signature of
                asyncio.create_subprocess_exec.
            on_exit: Called (or awaited) after a session has been torn down.
        """
        self.config = config
        self._dispatcher = dispatcher
        self._poller = poller
        self._transport_factory = transport_factory or (lambda: create_transport(config))
        self._launcher = launcher or asyncio.create_subprocess_exec
        self._on_exit = on_exit
        self._output_tasks: set[asyncio.Task] = set()
        # Serializes start/stop so only one mpv is ever launched
        self._lock = asyncio.Lock()
        self.session: Session | None = None

    def is_running(self) -> bool:
        return self.session is not None and self.session.active

    async def start(
        self,
        items: Sequence[PlaylistItem],
        start_position: float = 0.0,
        title: str | None = None,
        is_playlist: bool = False,
        on_progress: CallbackDescriptor | None = None,
    ) -> Session:
        """Stop any current session and launch mpv for a new one.

        Args:
            items: Items to play, in order.
            start_position: Offset into the first item, in seconds.
            title: Window title (single-item playback only).
            is_playlist: Whether the session tracks playlist transitions.
            on_progress: Optional periodic progress descriptor.

        Returns:
            The new, active Session.

        Raises:
            InvalidRequest: If items is empty.
            LaunchFailed: If mpv could not be started.
        """
        if not items:
            raise InvalidRequest("nothing to play")

        async with self._lock:
            await self._stop()
            return await self._launch(items, start_position, title, is_playlist, on_progress)

    async def _launch(
        self,
        items: Sequence[PlaylistItem],
        start_position: float,
        title: str | None,
        is_playlist: bool,
        on_progress: CallbackDescriptor | None,
    ) -> Session:
        transport = self._transport_factory()
        session = Session(
            items=list(items),
            is_playlist=is_playlist,
            on_complete=items[0].on_complete,
            on_progress=on_progress,
            transport=transport,
        )
        session.set_position(start_position)

        transport.prepare()
        args = build_args(
            transport.endpoint,
            session.items,
            start_position=start_position,
            title=None if is_playlist else title,
            extra_options=self.config.mpv_options,
        )
        logger.info(f"Starting mpv: {shlex.join([self.config.mpv_path, *args])}")

        try:
            process = await self._launcher(
                self.config.mpv_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchFailed(f"Could not start {self.config.mpv_path}: {e}") from e

        logger.info(f"mpv started with PID {process.pid}")
        session.process = process
        session.active = True
        self.session = session

        self._forward_output(process.stdout, "stdout")
        self._forward_output(process.stderr, "stderr")
        session.exit_task = asyncio.create_task(self._watch_exit(session))
        self._poller.start(session)
        return session

    async def stop(self) -> None:
        """Stop the current session, if any.

        Sends "quit" over IPC; if the transport is unavailable the
        transport's termination policy is used instead. Waits for the exit
        watcher to finish so the completion callback has been sent when
        this returns, then lets pending progress callbacks and output
        forwarding finish. Safe to call when nothing is running.
        """
        async with self._lock:
            await self._stop()
            await self._drain()

    async def _stop(self) -> None:
        session = self.session
        if session is None or session.process is None:
            return

        session.active = False
        process = session.process
        if process.returncode is None:
            try:
                await round_trip(
                    session.transport,
                    protocol.encode_batch([protocol.quit_query()]),
                    (),
                    self.config.ipc_timeout,
                )
                logger.info("Sent quit to mpv")
            except TransportError as e:
                logger.info(f"IPC quit failed ({e}), terminating mpv")
                session.transport.terminate(process)

        await self._wait_for_exit(session)

    async def _wait_for_exit(self, session: Session) -> None:
        process = session.process
        if process is not None:
            try:
                await asyncio.wait_for(process.wait(), self.config.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("mpv did not exit in time, killing it")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        if session.exit_task is not None:
            await asyncio.shield(session.exit_task)

    async def _drain(self) -> None:
        await self._poller.drain()
        tasks = [task for task in self._output_tasks if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _watch_exit(self, session: Session) -> None:
        """Wait for mpv to exit, report the last item and clear the session."""
        try:
            returncode = await session.process.wait()
            logger.info(
                f"mpv exited with code {returncode}, position={session.position:.1f}, "
                f"playlist index={session.playlist_index}"
            )
            session.active = False

            # Best effort: the socket is usually gone by now
            result = await query_state(session, self.config.ipc_timeout)
            if result is not None:
                apply_result(session, result)

            if session.on_complete is not None:
                await self._dispatcher.dispatch(
                    session.on_complete, session.position, session.paused
                )
        finally:
            session.active = False
            session.process = None
            session.transport = None
            if self.session is session:
                self.session = None

        if self._on_exit is not None:
            try:
                result = self._on_exit()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Player exit hook failed: {e}")

    def _forward_output(self, stream: asyncio.StreamReader | None, name: str) -> None:
        if stream is None:
            return
        task = asyncio.create_task(self._pump(stream, name))
        self._output_tasks.add(task)
        task.add_done_callback(self._output_tasks.discard)

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, name: str) -> None:
        # Read in chunks so an overlong line can never stall mpv on a full pipe
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            for line in chunk.decode("utf-8", errors="replace").splitlines():
                if line.strip():
                    mpv_logger.debug(f"mpv {name}: {line}")
