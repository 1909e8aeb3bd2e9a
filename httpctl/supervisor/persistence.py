import logging
from pathlib import Path
from typing import Optional, Tuple

log = logging.getLogger(__name__)


def read_pid_record(pid_path: Path) -> Optional[Tuple[int, Optional[float]]]:
    """
    Reads a PID file from disk.

    The file holds the PID on its first line and, optionally, the process
    start time on the second. A malformed file is removed so it cannot
    shadow a later start.

    :param pid_path: Location of the PID file.
    :return: A (pid, create_time) tuple if the file exists and is valid, else None.
        create_time is None for files written without one.
    """
    if not pid_path.exists():
        return None
    try:
        lines = pid_path.read_text().split()
        pid = int(lines[0])
        create_time = float(lines[1]) if len(lines) > 1 else None
    except (ValueError, IndexError, IOError):
        log.warning(f"Removing unreadable PID file '{pid_path}'.")
        pid_path.unlink(missing_ok=True)
        return None
    if pid <= 0:
        pid_path.unlink(missing_ok=True)
        return None
    return pid, create_time


def read_pid(pid_path: Path) -> Optional[int]:
    """Returns just the PID from a PID file, or None."""
    record = read_pid_record(pid_path)
    return record[0] if record else None


def write_pid(pid_path: Path, pid: int, create_time: Optional[float] = None) -> None:
    """
    Atomically writes a PID file.

    :param pid_path: Location of the PID file.
    :param pid: The process ID to record.
    :param create_time: The process start time as reported by psutil, if known.
    """
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    temp_pid_path = pid_path.with_suffix(".tmp")
    content = str(pid) if create_time is None else f"{pid}\n{create_time!r}"
    try:
        temp_pid_path.write_text(content)
        temp_pid_path.replace(pid_path)
    except (IOError, OSError) as e:
        log.error(f"Failed to write PID file '{pid_path}': {e}", exc_info=True)
    finally:
        temp_pid_path.unlink(missing_ok=True)


def remove_pid(pid_path: Path) -> None:
    pid_path.unlink(missing_ok=True)
    log.debug(f"Removed PID file '{pid_path}'.")
