"""Pytest configuration and shared fixtures for httpctl tests."""

from __future__ import annotations

import threading
import time
from typing import List, Optional

import pytest

from httpctl.supervisor import LifecycleState, ServiceRegistry, ServiceSupervisor, TransitionError

SERVICE_ID = "asgi_server"


class FakeService:
    """
    In-memory ManagedService.

    Successful requests move the state synchronously to ACTIVE or STOPPED.
    Setting `start_error`/`stop_error` makes requests fail and leaves the
    service FAILED.
    """

    def __init__(self, state: LifecycleState = LifecycleState.STOPPED, delay: float = 0.0) -> None:
        self.state = state
        self.delay = delay
        self.calls: List[str] = []
        self.start_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.state_reads = 0
        self._lock = threading.Lock()

    def current_state(self) -> LifecycleState:
        with self._lock:
            self.state_reads += 1
            return self.state

    def request_start(self) -> None:
        self.calls.append("start")
        if self.delay:
            time.sleep(self.delay)
        if self.start_error is not None:
            self.state = LifecycleState.FAILED
            raise self.start_error
        self.state = LifecycleState.ACTIVE

    def request_stop(self) -> None:
        self.calls.append("stop")
        if self.delay:
            time.sleep(self.delay)
        if self.stop_error is not None:
            self.state = LifecycleState.FAILED
            raise self.stop_error
        self.state = LifecycleState.STOPPED


@pytest.fixture
def fake_service() -> FakeService:
    return FakeService()


@pytest.fixture
def registry(fake_service: FakeService) -> ServiceRegistry:
    registry = ServiceRegistry()
    registry.register(SERVICE_ID, fake_service)
    return registry


@pytest.fixture
def supervisor(registry: ServiceRegistry) -> ServiceSupervisor:
    return ServiceSupervisor(SERVICE_ID, registry, label="HTTP Server")
