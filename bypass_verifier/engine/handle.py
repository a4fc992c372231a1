"""
EngineHandle - one running instance of the external bypass engine.

The handle owns the OS process, the two line pumps reading its stdout and
stderr, and nothing else. It is created by ProcessSupervisor on start,
disposed on stop or on failure, and never reused across starts.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import psutil

LOG = logging.getLogger(__name__)

LineCallback = Callable[[str], None]


class EngineHandle:
    """
    Wrapper around an asyncio subprocess running the engine.

    Features:
    - line-by-line delivery of stdout/stderr to callbacks
    - exit detection (`exited`, `wait_exit`)
    - graceful terminate and forced process-tree kill
    - idempotent disposal with a class-wide live counter
    """

    _live_count = 0

    def __init__(
        self,
        process: Optional[asyncio.subprocess.Process],
        profile_name: str = "",
    ):
        self.process = process
        self.profile_name = profile_name
        self._reader_tasks: List[asyncio.Task] = []
        self._disposed = False
        self._counted = False
        if process is not None:
            EngineHandle._live_count += 1
            self._counted = True

    @classmethod
    def live_count(cls) -> int:
        """Number of handles spawned and not yet disposed."""
        return cls._live_count

    @classmethod
    async def spawn(
        cls,
        executable: Path,
        arguments: Sequence[str],
        cwd: Path,
        profile_name: str,
        on_stdout: LineCallback,
        on_stderr: LineCallback,
        launcher: Sequence[str] = (),
    ) -> "EngineHandle":
        """
        Start the engine process and begin pumping its output.

        Raises:
            OSError: the binary is missing or the OS refused to spawn it.
        """
        process = await asyncio.create_subprocess_exec(
            *launcher,
            str(executable),
            *arguments,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
        handle = cls(process, profile_name)
        handle._start_pumps(on_stdout, on_stderr)
        return handle

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process is not None else None

    @property
    def exited(self) -> bool:
        """True once the OS process is gone; disposal alone does not count."""
        if self.process is None:
            return True
        return self.process.returncode is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _start_pumps(self, on_stdout: LineCallback, on_stderr: LineCallback) -> None:
        assert self.process is not None
        loop = asyncio.get_running_loop()
        self._reader_tasks = [
            loop.create_task(self._pump(self.process.stdout, on_stdout, "stdout")),
            loop.create_task(self._pump(self.process.stderr, on_stderr, "stderr")),
        ]

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        callback: LineCallback,
        label: str,
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # line longer than the stream limit; the buffer was dropped
                LOG.debug(f"Overlong {label} line from PID {self.pid} skipped")
                continue
            except (ConnectionResetError, BrokenPipeError):
                break
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if not line:
                continue
            try:
                callback(line)
            except Exception:
                LOG.exception(f"Engine {label} line handler failed")

    async def wait_exit(self, timeout: Optional[float] = None) -> bool:
        """Wait for the process to exit. Returns True if it did in time."""
        if self.process is None or self.process.returncode is not None:
            return True
        try:
            await asyncio.wait_for(self.process.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def terminate(self) -> None:
        """Ask the engine to exit (SIGTERM / TerminateProcess)."""
        if self.process is None or self.process.returncode is not None:
            return
        self.process.terminate()

    def kill_tree(self) -> None:
        """Force-kill the engine and any children it spawned."""
        if self.process is None or self.process.returncode is not None:
            return
        try:
            children = psutil.Process(self.process.pid).children(recursive=True)
        except psutil.Error:
            children = []
        for child in children:
            try:
                child.kill()
            except psutil.Error:
                pass
        try:
            self.process.kill()
        except ProcessLookupError:
            pass

    async def dispose(self) -> None:
        """Release pumps and pipes. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        try:
            for task in self._reader_tasks:
                if not task.done():
                    task.cancel()
            if self._reader_tasks:
                await asyncio.gather(*self._reader_tasks, return_exceptions=True)
            transport = getattr(self.process, "_transport", None)
            if transport is not None:
                transport.close()
        finally:
            self._reader_tasks = []
            if self._counted:
                EngineHandle._live_count -= 1
                self._counted = False
            LOG.debug(f"Engine handle for '{self.profile_name}' (PID {self.pid}) disposed")

    def __repr__(self) -> str:
        state = "exited" if self.exited else "running"
        return f"<EngineHandle profile={self.profile_name!r} pid={self.pid} {state}>"
