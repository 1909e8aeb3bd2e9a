import time
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from httpctl.supervisor import persistence, process_utils
from httpctl.supervisor.errors import TransitionError
from httpctl.supervisor.lifecycle import LifecycleState

log = logging.getLogger(__name__)


class ProcessService:
    """
    A managed service backed by a child OS process.

    The PID file is the record of a running instance, so a console started
    later can observe and stop a process launched by an earlier one. It also
    holds the process start time, so a PID reused by an unrelated process is
    not taken for ours. When a health URL is given, a live process only
    counts as active once that URL answers; until then it is reported as
    starting.

    Child output is piped into the `proc.<name>` logger, or appended to
    `output_path` when one is given so the process can outlive the console
    that launched it.
    """

    def __init__(
        self,
        name: str,
        args: List[str],
        cwd: Path,
        pid_path: Path,
        health_url: Optional[str] = None,
        startup_timeout: float = 15.0,
        shutdown_timeout: float = 10.0,
        poll_interval: float = 0.5,
        health_timeout: float = 1.0,
        prepare: Optional[Callable[["ProcessService"], object]] = None,
        output_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.args = list(args)
        self.cwd = Path(cwd)
        self.pid_path = Path(pid_path)
        self.health_url = health_url
        self.startup_timeout = startup_timeout
        self.shutdown_timeout = shutdown_timeout
        self.poll_interval = poll_interval
        self.health_timeout = health_timeout
        self._prepare = prepare
        self.output_path = Path(output_path) if output_path else None

        self._popen: Optional[subprocess.Popen] = None
        self._transition: Optional[LifecycleState] = None
        self._failed = False
        self._state_lock = threading.Lock()

    @property
    def pid(self) -> Optional[int]:
        """PID of the running process, or None if it is not running."""
        proc = self._live_process()
        return proc.pid if proc else None

    def current_state(self) -> LifecycleState:
        with self._state_lock:
            if self._transition is not None:
                return self._transition
            proc = self._find_process()
            if proc is None:
                return LifecycleState.FAILED if self._failed else LifecycleState.STOPPED

        if self.health_url is None or process_utils.is_healthy(self.health_url, self.health_timeout):
            return LifecycleState.ACTIVE
        return LifecycleState.STARTING

    def request_start(self) -> None:
        """
        Launches the process and waits until it is healthy.

        :raises TransitionError: If the process cannot be spawned, exits early,
            or does not become healthy within the startup timeout.
        """
        self._set_transition(LifecycleState.STARTING)
        try:
            self._launch()
        except TransitionError:
            self._failed = True
            raise
        else:
            self._failed = False
        finally:
            self._set_transition(None)

    def request_stop(self) -> None:
        """
        Terminates the process tree, killing anything still alive after the shutdown timeout.

        :raises TransitionError: If the processes cannot be signalled.
        """
        self._set_transition(LifecycleState.STOPPING)
        try:
            self._shutdown()
        except TransitionError:
            self._failed = True
            raise
        else:
            self._failed = False
        finally:
            self._set_transition(None)

    def _set_transition(self, state: Optional[LifecycleState]) -> None:
        with self._state_lock:
            self._transition = state

    def _reap(self) -> None:
        """Collects the exit status of our own child so it does not linger as a zombie."""
        if self._popen is not None and self._popen.poll() is not None:
            log.debug(f"Process '{self.name}' exited with code {self._popen.returncode}.")
            self._popen = None

    def _live_process(self) -> Optional[psutil.Process]:
        record = persistence.read_pid_record(self.pid_path)
        if record is None:
            return None
        return process_utils.get_live_process(*record)

    def _find_process(self) -> Optional[psutil.Process]:
        self._reap()
        record = persistence.read_pid_record(self.pid_path)
        if record is None:
            return None
        proc = process_utils.get_live_process(*record)
        if proc is None:
            log.warning(f"Process '{self.name}' (PID {record[0]}) is no longer running.")
            persistence.remove_pid(self.pid_path)
            self._failed = True
        return proc

    def _launch(self) -> None:
        if self._prepare is not None:
            try:
                self._prepare(self)
            except OSError as e:
                raise TransitionError("prepare_failed", f"Could not prepare '{self.name}': {e}") from e

        log.info(f"Starting process: {self.name}...")
        try:
            popen = self._spawn()
        except OSError as e:
            raise TransitionError("spawn_failed", f"Failed to launch '{self.name}': {e}") from e

        self._popen = popen
        if self.output_path is None:
            process_utils.log_process_output(popen, self.name)
        persistence.write_pid(self.pid_path, popen.pid, process_utils.get_create_time(popen.pid))
        self._wait_until_healthy(popen)
        log.info(f"{self.name} started successfully with PID: {popen.pid}")

    def _spawn(self) -> subprocess.Popen:
        popen_kwargs = process_utils.get_popen_creation_flags()
        if self.output_path is None:
            return subprocess.Popen(
                self.args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL,
                cwd=str(self.cwd.resolve()), **popen_kwargs
            )

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with self.output_path.open("ab") as output:
            # The child keeps its own copy of the descriptor.
            return subprocess.Popen(
                self.args, stdout=output, stderr=subprocess.STDOUT, stdin=subprocess.DEVNULL,
                cwd=str(self.cwd.resolve()), **popen_kwargs
            )

    def _wait_until_healthy(self, popen: subprocess.Popen) -> None:
        deadline = time.monotonic() + self.startup_timeout
        while True:
            returncode = popen.poll()
            if returncode is not None:
                self._popen = None
                persistence.remove_pid(self.pid_path)
                raise TransitionError("exited", f"'{self.name}' exited with code {returncode} during startup.")

            if self.health_url is None or process_utils.is_healthy(self.health_url, self.health_timeout):
                return

            if time.monotonic() >= deadline:
                log.error(f"'{self.name}' did not become healthy after {self.startup_timeout} seconds.")
                self._kill_launched(popen)
                raise TransitionError(
                    "startup_timeout",
                    f"'{self.name}' did not answer {self.health_url} within {self.startup_timeout} seconds.",
                )
            time.sleep(self.poll_interval)

    def _kill_launched(self, popen: subprocess.Popen) -> None:
        proc = process_utils.get_live_process(popen.pid)
        if proc is not None:
            try:
                process_utils.graceful_shutdown(process_utils.collect_process_tree(proc), self.shutdown_timeout)
            except psutil.Error as e:
                log.error(f"Failed to clean up '{self.name}' after a failed start: {e}")
        self._reap()
        persistence.remove_pid(self.pid_path)

    def _shutdown(self) -> None:
        with self._state_lock:
            proc = self._find_process()
        if proc is None:
            log.info(f"No running process found for '{self.name}'.")
            return

        log.info(f"Stopping process: {self.name} (PID {proc.pid})...")
        try:
            process_utils.graceful_shutdown(process_utils.collect_process_tree(proc), self.shutdown_timeout)
        except psutil.AccessDenied as e:
            raise TransitionError("access_denied", f"Not permitted to stop '{self.name}' (PID {proc.pid}).") from e
        except psutil.Error as e:
            raise TransitionError("stop_failed", f"Failed to stop '{self.name}': {e}") from e

        self._reap()
        persistence.remove_pid(self.pid_path)
        log.info(f"{self.name} (PID {proc.pid}) stopped.")
