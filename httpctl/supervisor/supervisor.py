import sys
import logging
import threading
from typing import Optional

from httpctl.supervisor.errors import TransitionError
from httpctl.supervisor.registry import ManagedService, ServiceRegistry
from httpctl.supervisor.lifecycle import (
    HALTED_STATES, RUNNING_STATES, Action, ErrorInfo, ErrorKind, LifecycleState, OperationOutcome
)

log = logging.getLogger(__name__)


class ServiceSupervisor:
    """
    Starts, stops and restarts one managed service in a state-aware way.

    The service is looked up by identifier on every call and its state is
    read fresh each time; nothing about it is cached here. Operations on one
    instance are serialized so the state check and the transition request
    happen as a pair.
    """

    def __init__(
        self,
        service_id: str,
        registry: ServiceRegistry,
        logger: Optional[logging.Logger] = None,
        label: Optional[str] = None,
    ) -> None:
        """
        :param service_id: Identifier of the service to manage, fixed for the supervisor's lifetime.
        :param registry: Where the service is looked up.
        :param logger: Destination for operation log records. Defaults to this module's logger.
        :param label: Name used in messages. Defaults to the service identifier.
        """
        self.service_id = service_id
        self.label = label or service_id
        self._registry = registry
        self._log = logger or log
        self._lock = threading.RLock()

    def start(self) -> OperationOutcome:
        """Starts the service unless it is already starting or active."""
        with self._lock:
            return self._start()

    def stop(self) -> OperationOutcome:
        """Stops the service unless it is already stopped or stopping."""
        with self._lock:
            return self._stop()

    def restart(self) -> OperationOutcome:
        """
        Runs a stop phase followed by a start phase.

        The start phase is attempted even if the stop phase failed. The
        combined outcome is skipped only when both phases were skipped.
        """
        with self._lock:
            if self.locate() is None:
                return self._missing(Action.RESTART)
            stop_outcome = self._stop()
            start_outcome = self._start()
            return OperationOutcome.combine(Action.RESTART, (stop_outcome, start_outcome))

    def status(self) -> Optional[LifecycleState]:
        """Returns the service's current state, or None if it cannot be found."""
        service = self.locate()
        if service is None:
            return None
        return service.current_state()

    def locate(self) -> Optional[ManagedService]:
        """Looks up the managed service in the registry."""
        return self._registry.find(self.service_id)

    def _missing(self, action: Action) -> OperationOutcome:
        message = f"No service registered as '{self.service_id}'."
        self._emit(logging.DEBUG, f"{action.value}: {message}")
        error = ErrorInfo(kind=ErrorKind.NO_SUCH_SUBORDINATE, message=message, action=action)
        return OperationOutcome(action=action, errors=(error,))

    def _start(self) -> OperationOutcome:
        service = self.locate()
        if service is None:
            return self._missing(Action.START)

        try:
            state = service.current_state()
        except Exception as e:
            return self._failed(Action.START, e)
        if state in RUNNING_STATES:
            note = f"{self.label} is already running."
            self._emit(logging.DEBUG, f"Skipping start of '{self.service_id}' in state {state.value}.")
            return OperationOutcome(action=Action.START, skipped=True, note=note)

        return self._transition(Action.START, service.request_start)

    def _stop(self) -> OperationOutcome:
        service = self.locate()
        if service is None:
            return self._missing(Action.STOP)

        try:
            state = service.current_state()
        except Exception as e:
            return self._failed(Action.STOP, e)
        if state in HALTED_STATES:
            note = f"{self.label} is already stopped."
            self._emit(logging.DEBUG, f"Skipping stop of '{self.service_id}' in state {state.value}.")
            return OperationOutcome(action=Action.STOP, skipped=True, note=note)

        return self._transition(Action.STOP, service.request_stop)

    def _transition(self, action: Action, request) -> OperationOutcome:
        """Issues one transition request and reports it with exactly one log record."""
        try:
            request()
        except Exception as e:
            return self._failed(action, e)

        past = "started" if action is Action.START else "stopped"
        self._emit(logging.INFO, f"{self.label} {past}.")
        return OperationOutcome(action=action)

    def _failed(self, action: Action, e: Exception) -> OperationOutcome:
        """
        Turns an exception raised by the service into a failed outcome.

        A TransitionError carries the service's own code and message. Anything
        else is unexpected and reported under the code 'unexpected'.
        """
        if isinstance(e, TransitionError):
            code, message = e.code, e.message
        else:
            code, message = "unexpected", f"{type(e).__name__}: {e}"
        self._emit(logging.ERROR, f"Unable to {action.value} {self.label}: {message}", exc_info=e)
        error = ErrorInfo(kind=ErrorKind.TRANSITION_FAILED, message=message, code=code, action=action)
        return OperationOutcome(action=action, errors=(error,))

    def _emit(self, level: int, message: str, **kwargs) -> None:
        # A broken log handler must not change the outcome of an operation.
        try:
            self._log.log(level, message, **kwargs)
        except Exception as e:
            print(f"httpctl: could not write log record ({type(e).__name__}: {e}): {message}", file=sys.stderr)
