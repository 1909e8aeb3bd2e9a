import sys
import psutil
import logging
import requests
import threading
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

log = logging.getLogger(__name__)

# psutil derives create_time from clock ticks, so equal times can differ slightly.
CREATE_TIME_TOLERANCE = 0.5


#* --- Process Status ---
def get_live_process(pid: Optional[int], create_time: Optional[float] = None) -> Optional[psutil.Process]:
    """
    Returns a psutil handle for a PID if that process is alive and not a zombie.

    :param pid: The process ID, or None.
    :param create_time: Expected start time of the process. A process under the
        same PID that started at a different time is a reused PID and is ignored.
    :return: A psutil.Process, or None if the process is gone.
    """
    if pid is None or not psutil.pid_exists(pid):
        return None
    try:
        proc = psutil.Process(pid)
        if not proc.is_running() or proc.status() == psutil.STATUS_ZOMBIE:
            return None
        if create_time is not None and abs(proc.create_time() - create_time) > CREATE_TIME_TOLERANCE:
            log.debug(f"PID {pid} now belongs to another process.")
            return None
        return proc
    except psutil.NoSuchProcess:
        return None

def get_create_time(pid: int) -> Optional[float]:
    """Returns the start time psutil reports for a PID, or None if it is already gone."""
    try:
        return psutil.Process(pid).create_time()
    except psutil.Error:
        return None

def is_healthy(url: str, timeout: float = 1.0) -> bool:
    """Returns True if an HTTP GET on the URL answers with a 2xx status."""
    try:
        response = requests.get(url, timeout=timeout)
        return response.ok
    except requests.RequestException:
        return False

#* --- Process Creation ---
def get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific keyword arguments for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def get_web_server_args(config) -> Tuple[List[str], Path]:
    """
    Returns the command line and CWD for the embedded web server.

    Note: The colon in "httpctl.web.server:app" names the ASGI app object for Hypercorn.

    :param config: The settings object providing the executable and paths.
    """
    return (
        [
            config.PYTHON_EXECUTABLE, "-m", "hypercorn",
            "-c", f"file:{config.HYPERCORN_CONFIG_PATH.resolve()}",
            "httpctl.web.server:app",
        ],
        config.BASE_DIR,
    )

def write_hypercorn_config(config) -> Path:
    """Renders the Hypercorn config file from the current settings."""
    path = Path(config.HYPERCORN_CONFIG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.HYPERCORN_CONFIG_TEMPLATE.format(
        bind_host=config.WEB_SERVER_HOST,
        bind_port=config.WEB_SERVER_PORT,
    ))
    log.debug(f"Wrote Hypercorn config to '{path}'.")
    return path

def _read_pipe(pipe, process_name: str, level: int, line_handler: Optional[Callable[[str], None]] = None):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            if line_handler:
                line_handler(line)
            else:
                proc_logger.log(level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str, line_handler: Optional[Callable[[str], None]] = None) -> None:
    """Starts daemon threads that consume a child's stdout/stderr into the 'proc.<name>' logger."""
    if process.stdout:
        threading.Thread(
            target=_read_pipe, args=(process.stdout, name, logging.INFO, line_handler),
            daemon=True, name=f"{name}-stdout"
        ).start()
    if process.stderr:
        threading.Thread(
            target=_read_pipe, args=(process.stderr, name, logging.ERROR),
            daemon=True, name=f"{name}-stderr"
        ).start()

#* --- Process Shutdown ---
def collect_process_tree(proc: psutil.Process) -> Set[psutil.Process]:
    """Returns the process together with all of its descendants."""
    procs = {proc}
    try:
        procs.update(proc.children(recursive=True))
    except psutil.NoSuchProcess:
        log.debug(f"Process {proc.pid} no longer exists, skipping children retrieval.")
    return procs

def _terminate_processes(processes: Set[psutil.Process]) -> None:
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {proc.pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue

def _forceful_kill(processes: List[psutil.Process]) -> None:
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            continue

def graceful_shutdown(processes: Set[psutil.Process], timeout: float) -> None:
    """
    Terminates the processes, waits up to `timeout` seconds, then kills survivors.

    :raises psutil.AccessDenied: If a process may not be signalled.
    """
    _terminate_processes(processes)
    procs_list = list(processes)
    try:
        _, alive = psutil.wait_procs(procs_list, timeout=timeout)
    except psutil.TimeoutExpired:
        alive = procs_list
    _forceful_kill(alive)
    if alive:
        psutil.wait_procs(alive, timeout=timeout)
