"""
The Supervisor package.

Contains the ServiceSupervisor, which starts, stops and restarts one
managed service, together with the service registry, the lifecycle and
outcome types, and a process-backed service implementation.
"""
from .errors import TransitionError
from .registry import ManagedService, ServiceRegistry
from .supervisor import ServiceSupervisor
from .process_service import ProcessService
from .lifecycle import Action, ErrorInfo, ErrorKind, LifecycleState, OperationOutcome

__all__ = [
    "Action", "ErrorInfo", "ErrorKind", "LifecycleState", "ManagedService", "OperationOutcome",
    "ProcessService", "ServiceRegistry", "ServiceSupervisor", "TransitionError",
]
