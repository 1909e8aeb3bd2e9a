import logging
import threading
from typing import Dict, List, Optional, Protocol, runtime_checkable

from httpctl.supervisor.lifecycle import LifecycleState

log = logging.getLogger(__name__)


@runtime_checkable
class ManagedService(Protocol):
    """
    Anything whose lifecycle a ServiceSupervisor can drive.

    `request_start` and `request_stop` return normally on success and raise
    `TransitionError` on failure.
    """

    def current_state(self) -> LifecycleState:
        ...

    def request_start(self) -> None:
        ...

    def request_stop(self) -> None:
        ...


class ServiceRegistry:
    """A thread-safe lookup of managed services by identifier."""

    def __init__(self) -> None:
        self._services: Dict[str, ManagedService] = {}
        self._lock = threading.Lock()

    def register(self, service_id: str, service: ManagedService) -> None:
        """
        Adds a service under the given identifier.

        :raises ValueError: If the identifier is already taken.
        """
        with self._lock:
            if service_id in self._services:
                raise ValueError(f"Service '{service_id}' is already registered.")
            self._services[service_id] = service
        log.debug(f"Registered service '{service_id}'.")

    def unregister(self, service_id: str) -> Optional[ManagedService]:
        """Removes a service and returns it, or None if it was not registered."""
        with self._lock:
            service = self._services.pop(service_id, None)
        if service is not None:
            log.debug(f"Unregistered service '{service_id}'.")
        return service

    def find(self, service_id: str) -> Optional[ManagedService]:
        with self._lock:
            return self._services.get(service_id)

    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._services)

    def __contains__(self, service_id: str) -> bool:
        return self.find(service_id) is not None
