"""
ProcessSupervisor - starts and stops the external bypass engine.

Start renders the profile into engine arguments, spawns the binary with
piped output and waits for the engine to print its readiness marker. The
readiness future is raced against a timer; whichever finishes first wins and
the readiness listener is always unregistered afterwards.

Stop is best effort and never raises: graceful terminate, bounded wait,
forced process-tree kill, and disposal of the handle in a finally block.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from ..config import VerifierConfig
from ..errors import EngineBusyError, EngineStartError
from ..models import Profile
from .arguments import build_arguments, format_command
from .handle import EngineHandle

LOG = logging.getLogger(__name__)

LineListener = Callable[[str], None]


class ProcessSupervisor:
    """
    Owns at most one EngineHandle at a time.

    Collaborators may subscribe to raw engine output through
    `output_listeners` / `error_listeners` (e.g. StatusCollector). The
    supervisor itself only looks for the readiness marker.
    """

    def __init__(self, config: VerifierConfig):
        self.config = config
        self.output_listeners: List[LineListener] = []
        self.error_listeners: List[LineListener] = []
        self._readiness_listeners: List[LineListener] = []
        self._current: Optional[EngineHandle] = None

        if not config.engine_path.exists():
            LOG.warning(
                f"{config.engine_executable} not found at {config.engine_path}. "
                "Profiles cannot be started until it is installed."
            )

    @property
    def current(self) -> Optional[EngineHandle]:
        return self._current

    def is_running(self) -> bool:
        return self._current is not None and not self._current.exited

    def add_output_listener(self, listener: LineListener) -> None:
        self.output_listeners.append(listener)

    def add_error_listener(self, listener: LineListener) -> None:
        self.error_listeners.append(listener)

    def _dispatch(self, listeners: List[LineListener], line: str) -> None:
        for listener in list(listeners):
            try:
                listener(line)
            except Exception:
                LOG.exception("Engine line listener failed")

    def _on_output_line(self, line: str) -> None:
        self._dispatch(self.output_listeners, line)
        if self.config.readiness_marker in line:
            self._dispatch(self._readiness_listeners, line)

    def _on_error_line(self, line: str) -> None:
        self._dispatch(self.error_listeners, line)

    async def start(
        self,
        profile: Profile,
        game_filter_enabled: Optional[bool] = None,
        filter_all_ip: Optional[bool] = None,
    ) -> EngineHandle:
        """
        Start the engine for a profile and wait for readiness.

        Args:
            profile: profile to run
            game_filter_enabled: overrides config.game_filter_enabled
            filter_all_ip: overrides config.filter_all_ip

        Returns:
            The live EngineHandle (also kept as `current`).

        Raises:
            EngineBusyError: another handle is still live
            EngineStartError: spawn failed, engine exited early, or the
                readiness marker did not appear within the timeout
        """
        if self.is_running():
            raise EngineBusyError(
                f"Engine already running for profile '{self._current.profile_name}'",
                profile.name,
            )
        if self._current is not None:
            # exited on its own; release it before starting a new one
            await self.stop(self._current)

        if game_filter_enabled is None:
            game_filter_enabled = self.config.game_filter_enabled
        if filter_all_ip is None:
            filter_all_ip = self.config.filter_all_ip

        executable = self.config.engine_path
        arguments = build_arguments(
            profile,
            self.config.bin_dir,
            self.config.lists_dir,
            game_filter_enabled=game_filter_enabled,
            filter_all_ip=filter_all_ip,
        )
        LOG.info(f"Starting engine with profile: {profile.name}")
        LOG.debug(f"Command: {format_command(executable, arguments, self.config.engine_launcher)}")

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()

        def on_ready(_line: str) -> None:
            if not ready.done():
                ready.set_result(True)

        self._readiness_listeners.append(on_ready)
        try:
            try:
                handle = await EngineHandle.spawn(
                    executable,
                    arguments,
                    cwd=self.config.bin_dir,
                    profile_name=profile.name,
                    on_stdout=self._on_output_line,
                    on_stderr=self._on_error_line,
                    launcher=self.config.engine_launcher,
                )
            except OSError as e:
                LOG.error(f"Failed to start engine for '{profile.name}': {e}")
                raise EngineStartError(f"Spawn failed: {e}", profile.name) from e

            self._current = handle
            LOG.info(f"Engine process started with PID {handle.pid}")

            exit_waiter = loop.create_task(handle.wait_exit())
            try:
                done, _ = await asyncio.wait(
                    {ready, exit_waiter},
                    timeout=self.config.readiness_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            except asyncio.CancelledError:
                await self.stop(handle)
                raise
            finally:
                if not exit_waiter.done():
                    exit_waiter.cancel()

            if ready in done:
                LOG.info(f"Engine ready for profile '{profile.name}' (PID {handle.pid})")
                return handle

            if exit_waiter in done:
                code = handle.returncode
                await self.stop(handle)
                LOG.error(f"Engine exited with code {code} before signalling readiness")
                raise EngineStartError(
                    f"Engine exited early (code {code})", profile.name
                )

            LOG.warning(
                f"Engine did not signal readiness within {self.config.readiness_timeout:.1f}s "
                f"for profile '{profile.name}', stopping it"
            )
            await self.stop(handle)
            raise EngineStartError(
                f"Readiness timeout after {self.config.readiness_timeout:.1f}s",
                profile.name,
            )
        finally:
            self._readiness_listeners.remove(on_ready)
            if not ready.done():
                ready.cancel()

    async def stop(self, handle: Optional[EngineHandle]) -> None:
        """
        Stop an engine handle. Never raises; idempotent.

        After this returns the handle is disposed, and `handle.exited` is True
        unless the forced kill failed. The shutdown itself is shielded so that
        cancelling the caller cannot leave the engine running.
        """
        if handle is None:
            return
        stopping = asyncio.ensure_future(self._stop(handle))
        try:
            await asyncio.shield(stopping)
        except asyncio.CancelledError:
            # let the shutdown finish before unwinding
            await stopping
            raise
        finally:
            if self._current is handle:
                self._current = None

    async def _stop(self, handle: EngineHandle) -> None:
        try:
            if handle.disposed:
                return
            if handle.exited:
                LOG.info(f"Engine process {handle.pid} has already exited")
                return

            LOG.info(f"Stopping engine process {handle.pid}")
            deadline = self.config.process_stop_timeout + self.config.process_stop_grace
            try:
                handle.terminate()
                if await handle.wait_exit(deadline):
                    LOG.debug(f"Engine process {handle.pid} exited normally")
                else:
                    LOG.warning(
                        f"Engine process {handle.pid} did not exit within "
                        f"{deadline:.1f}s, forcing termination"
                    )
                    self._force_kill(handle)
            except ProcessLookupError:
                LOG.debug(f"Engine process {handle.pid} already gone")
            except Exception as e:
                LOG.error(f"Error stopping engine process {handle.pid}: {e}")
                self._force_kill(handle)

            if not handle.exited and not await handle.wait_exit(self.config.process_stop_grace):
                LOG.error(f"Engine process {handle.pid} still running after forced kill")
        finally:
            await handle.dispose()

    def _force_kill(self, handle: EngineHandle) -> None:
        try:
            handle.kill_tree()
        except Exception as e:
            LOG.error(f"Failed to force kill engine process {handle.pid}: {e}")

    async def aclose(self) -> None:
        """Stop whatever is running."""
        await self.stop(self._current)
