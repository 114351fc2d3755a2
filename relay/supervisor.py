"""
Supervisor for the fowsr sensor reader subprocess.

Classes:
    SupervisorState: Lifecycle state of the supervised process
    SensorSupervisor: Spawns fowsr, detects exits, restarts after a fixed backoff
"""

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_RESTART_BACKOFF_SEC = 15.0
DEFAULT_SHUTDOWN_TIMEOUT_SEC = 5.0


@dataclass
class SupervisorState:
    """Lifecycle state of the supervised process."""

    process: subprocess.Popen | None = None
    last_status: int | None = None
    restart_at: float = 0.0  # Earliest time (clock seconds) a spawn may happen
    spawn_count: int = 0


class SensorSupervisor:
    """
    Keeps exactly one fowsr process alive.

    tick() is called once per reactor iteration. It never blocks: the
    liveness check uses Popen.poll() and the process's stdout is a
    non-blocking pipe the reactor selects on.

    After any exit (or a failed spawn) the next spawn is held back by a
    fixed backoff, which matches how long the weather station takes to
    become readable again after a USB reset.
    """

    def __init__(
        self,
        binary: str,
        args: tuple[str, ...] | list[str] = ("-c",),
        restart_backoff: float = DEFAULT_RESTART_BACKOFF_SEC,
        clock: Callable[[], float] = time.monotonic,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ):
        """
        Initialize the supervisor.

        Args:
            binary: Path to the fowsr executable
            args: Arguments passed to fowsr ("-c" selects continuous output)
            restart_backoff: Seconds to wait after an exit before respawning
            clock: Monotonic time source
            popen: Process factory (subprocess.Popen compatible)
        """
        self._binary = binary
        self._args = tuple(args)
        self._restart_backoff = restart_backoff
        self._clock = clock
        self._popen = popen
        self._state = SupervisorState()
        self._output = None  # Read end of the child's stdout pipe

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state.process is not None

    @property
    def pid(self) -> int | None:
        process = self._state.process
        return process.pid if process is not None else None

    @property
    def output_fd(self) -> int | None:
        """File descriptor of the child's stdout, or None if not open."""
        return self._output.fileno() if self._output is not None else None

    @property
    def command(self) -> list[str]:
        return [self._binary, *self._args]

    def tick(self) -> None:
        """Reap an exited child, or spawn one if the backoff has elapsed."""
        now = self._clock()

        if self._state.process is not None:
            status = self._state.process.poll()
            if status is None:
                return
            pid = self._state.process.pid
            self._on_exit(now, status)
            logger.warning(
                f"fowsr (pid {pid}) exited with status {status}; "
                f"restarting in {self._restart_backoff:.0f}s"
            )
            return

        if now >= self._state.restart_at:
            self._spawn(now)

    def read_output(self, max_bytes: int = 4096) -> bytes | None:
        """
        Read whatever the child has written to stdout without blocking.

        Returns:
            The bytes read, b"" at end of stream (the pipe is then closed),
            or None if no pipe is open or nothing is available yet
        """
        if self._output is None:
            return None
        try:
            data = os.read(self._output.fileno(), max_bytes)
        except BlockingIOError:
            return None
        if not data:
            logger.info("fowsr closed its output")
            self._close_output()
        return data

    def stop(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT_SEC) -> int | None:
        """
        Terminate the child and wait for it, escalating to SIGKILL.

        Args:
            timeout: Seconds to wait after SIGTERM before sending SIGKILL

        Returns:
            The child's exit status, or None if no child was running
        """
        process = self._state.process
        if process is None:
            self._close_output()
            return None

        logger.info(f"Terminating fowsr (pid {process.pid})")
        try:
            process.terminate()
            status = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"fowsr (pid {process.pid}) did not exit within {timeout}s, killing"
            )
            process.kill()
            status = process.wait()
        except ProcessLookupError:
            status = process.wait()

        logger.info(f"fowsr (pid {process.pid}) stopped with status {status}")
        self._on_exit(self._clock(), status)
        return status

    def _spawn(self, now: float) -> None:
        try:
            process = self._popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as e:
            logger.error(
                f"Failed to start {self._binary}: {e}; "
                f"retrying in {self._restart_backoff:.0f}s"
            )
            self._on_exit(now, None)
            return

        os.set_blocking(process.stdout.fileno(), False)
        self._state.process = process
        self._state.spawn_count += 1
        self._output = process.stdout
        logger.info(f"Started {' '.join(self.command)} (pid {process.pid})")

    def _on_exit(self, now: float, status: int | None) -> None:
        self._close_output()
        self._state.process = None
        self._state.last_status = status
        self._state.restart_at = now + self._restart_backoff

    def _close_output(self) -> None:
        if self._output is not None:
            self._output.close()
            self._output = None
