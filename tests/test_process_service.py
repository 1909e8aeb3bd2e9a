"""Tests for ProcessService using real child processes."""

from __future__ import annotations

import socket
import subprocess
import sys
import time

import psutil
import pytest

from httpctl.local.config import MergedSettings
from httpctl.supervisor import (
    LifecycleState, ProcessService, ServiceRegistry, ServiceSupervisor, TransitionError, persistence
)
from httpctl.supervisor.services import WEB_SERVER_ID, build_web_server, create_supervisor

pytestmark = [pytest.mark.integration]

SLEEPER = [sys.executable, "-c", "import time; time.sleep(60)"]
# Nothing listens on port 1, so probes fail fast with a refused connection.
UNREACHABLE_HEALTH_URL = "http://127.0.0.1:1/health"


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def make_service(tmp_path):
    services = []

    def factory(args=SLEEPER, **kwargs) -> ProcessService:
        kwargs.setdefault("shutdown_timeout", 5)
        kwargs.setdefault("poll_interval", 0.05)
        service = ProcessService("sleeper", args, cwd=tmp_path, pid_path=tmp_path / "sleeper.pid", **kwargs)
        services.append(service)
        return service

    yield factory

    for service in services:
        if service.pid is not None:
            service.request_stop()


class TestPersistence:
    def test_write_read_remove(self, tmp_path):
        pid_path = tmp_path / "bin" / "svc.pid"

        persistence.write_pid(pid_path, 4321)
        assert persistence.read_pid(pid_path) == 4321

        persistence.remove_pid(pid_path)
        assert persistence.read_pid(pid_path) is None

    def test_start_time_recorded(self, tmp_path):
        pid_path = tmp_path / "svc.pid"

        persistence.write_pid(pid_path, 4321, 1700000000.25)

        assert persistence.read_pid_record(pid_path) == (4321, 1700000000.25)
        assert persistence.read_pid(pid_path) == 4321

    def test_file_without_start_time(self, tmp_path):
        pid_path = tmp_path / "svc.pid"
        pid_path.write_text("4321\n")

        assert persistence.read_pid_record(pid_path) == (4321, None)

    def test_malformed_file_removed(self, tmp_path):
        pid_path = tmp_path / "svc.pid"
        pid_path.write_text("not a pid")

        assert persistence.read_pid(pid_path) is None
        assert not pid_path.exists()


class TestProcessService:
    """Lifecycle of a plain child process."""

    def test_start_and_stop(self, make_service):
        service = make_service()
        assert service.current_state() is LifecycleState.STOPPED

        service.request_start()

        assert service.current_state() is LifecycleState.ACTIVE
        assert service.pid is not None
        assert persistence.read_pid(service.pid_path) == service.pid
        pid = service.pid

        service.request_stop()

        assert service.current_state() is LifecycleState.STOPPED
        assert not service.pid_path.exists()
        assert not psutil.pid_exists(pid) or psutil.Process(pid).status() == psutil.STATUS_ZOMBIE

    def test_spawn_failure(self, make_service, tmp_path):
        service = make_service(args=[str(tmp_path / "no-such-binary")])

        with pytest.raises(TransitionError) as exc_info:
            service.request_start()

        assert exc_info.value.code == "spawn_failed"
        assert service.current_state() is LifecycleState.FAILED

    def test_exit_during_startup(self, make_service):
        service = make_service(
            args=[sys.executable, "-c", "import sys; sys.exit(3)"],
            health_url=UNREACHABLE_HEALTH_URL,
            startup_timeout=10,
        )

        with pytest.raises(TransitionError) as exc_info:
            service.request_start()

        assert exc_info.value.code == "exited"
        assert "code 3" in exc_info.value.message
        assert not service.pid_path.exists()
        assert service.current_state() is LifecycleState.FAILED

    def test_startup_timeout_kills_process(self, make_service):
        service = make_service(health_url=UNREACHABLE_HEALTH_URL, startup_timeout=0.5)

        with pytest.raises(TransitionError) as exc_info:
            service.request_start()

        assert exc_info.value.code == "startup_timeout"
        assert service.pid is None
        assert not service.pid_path.exists()
        assert service.current_state() is LifecycleState.FAILED

    def test_unhealthy_live_process_is_starting(self, make_service):
        service = make_service()
        service.request_start()

        service.health_url = UNREACHABLE_HEALTH_URL

        assert service.current_state() is LifecycleState.STARTING

    def test_crash_is_reported_as_failed(self, make_service):
        service = make_service()
        service.request_start()

        psutil.Process(service.pid).kill()
        service._popen.wait(timeout=5)

        assert service.current_state() is LifecycleState.FAILED
        assert not service.pid_path.exists()

        service.request_stop()
        assert service.current_state() is LifecycleState.STOPPED

    def test_stale_pid_file_from_earlier_run(self, make_service):
        finished = subprocess.Popen([sys.executable, "-c", "pass"])
        finished.wait(timeout=10)
        service = make_service()
        persistence.write_pid(service.pid_path, finished.pid)

        assert service.current_state() is LifecycleState.FAILED
        assert not service.pid_path.exists()

    def test_reused_pid_is_not_ours(self, make_service):
        bystander = subprocess.Popen(SLEEPER)
        try:
            service = make_service()
            # The PID file names a live process, but one that started at another time.
            started_at = psutil.Process(bystander.pid).create_time()
            persistence.write_pid(service.pid_path, bystander.pid, started_at - 3600)

            assert service.current_state() is LifecycleState.FAILED
            assert service.pid is None
            assert not service.pid_path.exists()

            service.request_stop()
            assert bystander.poll() is None
        finally:
            bystander.kill()
            bystander.wait(timeout=10)

    def test_pid_file_records_start_time(self, make_service):
        service = make_service()
        service.request_start()

        pid, create_time = persistence.read_pid_record(service.pid_path)

        assert pid == service.pid
        assert create_time == pytest.approx(psutil.Process(pid).create_time(), abs=0.5)

    def test_second_instance_sees_running_process(self, make_service):
        first = make_service()
        first.request_start()

        second = make_service()

        assert second.current_state() is LifecycleState.ACTIVE
        assert second.pid == first.pid
        second.request_stop()
        assert first.current_state() is LifecycleState.STOPPED

    def test_prepare_hook(self, make_service):
        calls = []
        service = make_service(prepare=lambda svc: calls.append(svc.name))

        service.request_start()

        assert calls == ["sleeper"]

    def test_prepare_failure(self, make_service):
        def prepare(svc):
            raise PermissionError("read-only")

        service = make_service(prepare=prepare)

        with pytest.raises(TransitionError) as exc_info:
            service.request_start()

        assert exc_info.value.code == "prepare_failed"
        assert service.pid is None

    def test_output_written_to_file(self, make_service, tmp_path):
        output_path = tmp_path / "logs" / "sleeper.out.log"
        service = make_service(
            args=[sys.executable, "-u", "-c", "print('hello from child'); import time; time.sleep(60)"],
            output_path=output_path,
        )

        service.request_start()

        deadline = time.monotonic() + 10
        while time.monotonic() < deadline and "hello from child" not in output_path.read_text():
            time.sleep(0.05)
        assert "hello from child" in output_path.read_text()


class TestSupervisedProcess:
    """The supervisor driving a real process."""

    def test_start_stop_restart(self, make_service):
        service = make_service()
        registry = ServiceRegistry()
        registry.register("sleeper", service)
        supervisor = ServiceSupervisor("sleeper", registry)

        assert supervisor.start().skipped is False
        assert supervisor.start().skipped is True
        first_pid = service.pid

        restarted = supervisor.restart()
        assert restarted.ok and restarted.skipped is False
        assert service.pid not in (None, first_pid)

        assert supervisor.stop().ok
        assert supervisor.stop().skipped is True
        assert supervisor.status() is LifecycleState.STOPPED


def web_settings(tmp_path) -> MergedSettings:
    settings = MergedSettings(overrides_path=tmp_path / "overrides.json")
    settings.BIN_DIR = tmp_path / "bin"
    settings.LOGS_DIR = tmp_path / "logs"
    settings.HYPERCORN_CONFIG_PATH = tmp_path / "bin" / "hypercorn_config.py"
    settings.WEB_SERVER_HOST = "127.0.0.1"
    settings.WEB_SERVER_PORT = free_port()
    settings.STARTUP_TIMEOUT = 30
    settings.GRACEFUL_SHUTDOWN_TIMEOUT = 5
    settings.HEALTH_CHECK_INTERVAL = 0.2
    return settings


class TestWebServerService:
    """The embedded web server definition."""

    def test_definition(self, tmp_path):
        settings = web_settings(tmp_path)

        service = build_web_server(settings)

        assert service.name == WEB_SERVER_ID
        assert "hypercorn" in service.args
        assert service.args[-1] == "httpctl.web.server:app"
        assert service.pid_path == settings.BIN_DIR / "asgi_server.pid"
        assert service.health_url == f"http://127.0.0.1:{settings.WEB_SERVER_PORT}/health"

    def test_settings_changed_after_build_apply_on_next_start(self, tmp_path):
        settings = web_settings(tmp_path)
        service = build_web_server(settings)
        new_port = free_port()

        assert settings.update_setting("WEB_SERVER_PORT", str(new_port))[0]
        assert settings.update_setting("STARTUP_TIMEOUT", "42")[0]
        assert settings.update_setting("GRACEFUL_SHUTDOWN_TIMEOUT", "7")[0]
        service._prepare(service)

        assert service.health_url == f"http://127.0.0.1:{new_port}/health"
        assert service.startup_timeout == 42
        assert service.shutdown_timeout == 7
        assert f'bind = "127.0.0.1:{new_port}"' in settings.HYPERCORN_CONFIG_PATH.read_text()

    def test_restart_after_port_change(self, tmp_path):
        settings = web_settings(tmp_path)
        supervisor = create_supervisor(settings)
        service = supervisor.locate()

        try:
            assert supervisor.start().ok
            new_port = free_port()
            settings.update_setting("WEB_SERVER_PORT", str(new_port))

            outcome = supervisor.restart()

            assert outcome.ok, outcome.errors
            assert supervisor.status() is LifecycleState.ACTIVE
            assert service.health_url.endswith(f":{new_port}/health")
        finally:
            if service.pid is not None:
                service.request_stop()

    def test_create_supervisor_uses_configured_id(self, tmp_path):
        settings = web_settings(tmp_path)
        settings.MANAGED_SERVICE_ID = "elsewhere"

        supervisor = create_supervisor(settings)

        assert supervisor.service_id == "elsewhere"
        assert supervisor.status() is None
        assert supervisor.start().error.kind.value == "no_such_subordinate"

    def test_serves_health_endpoint(self, tmp_path):
        settings = web_settings(tmp_path)
        supervisor = create_supervisor(settings)
        service = supervisor.locate()

        try:
            outcome = supervisor.start()
            assert outcome.ok, outcome.errors
            assert supervisor.status() is LifecycleState.ACTIVE
            assert settings.HYPERCORN_CONFIG_PATH.exists()
        finally:
            if service.pid is not None:
                service.request_stop()

        assert supervisor.status() is LifecycleState.STOPPED
