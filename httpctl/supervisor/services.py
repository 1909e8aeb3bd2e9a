import logging
from functools import partial

from httpctl.supervisor import process_utils
from httpctl.supervisor.registry import ServiceRegistry
from httpctl.supervisor.supervisor import ServiceSupervisor
from httpctl.supervisor.process_service import ProcessService

log = logging.getLogger(__name__)

WEB_SERVER_ID = "asgi_server"


def get_health_url(config) -> str:
    return f"http://{config.WEB_SERVER_HOST}:{config.WEB_SERVER_PORT}{config.HEALTH_CHECK_PATH}"


def apply_web_server_settings(config, service: ProcessService) -> None:
    """
    Brings the web server definition in line with the current settings.

    Runs before every start, so a `config set` made in a running console
    takes effect on the next start or restart: the Hypercorn config file is
    rewritten and the health URL and timeouts are re-read.

    :param config: The settings object, usually `effective_settings`.
    :param service: The web server service about to be started.
    """
    service.health_url = get_health_url(config)
    service.startup_timeout = config.STARTUP_TIMEOUT
    service.shutdown_timeout = config.GRACEFUL_SHUTDOWN_TIMEOUT
    service.poll_interval = config.HEALTH_CHECK_INTERVAL
    service.health_timeout = config.HEALTH_CHECK_REQUEST_TIMEOUT
    process_utils.write_hypercorn_config(config)


def build_web_server(config) -> ProcessService:
    """
    Describes the embedded web server (Hypercorn serving httpctl.web.server:app).

    Server output goes to a log file, so the server keeps running after a
    one-shot console exits.

    :param config: The settings object, usually `effective_settings`.
    """
    args, cwd = process_utils.get_web_server_args(config)
    return ProcessService(
        name=WEB_SERVER_ID,
        args=args,
        cwd=cwd,
        pid_path=config.BIN_DIR / f"{WEB_SERVER_ID}.pid",
        health_url=get_health_url(config),
        startup_timeout=config.STARTUP_TIMEOUT,
        shutdown_timeout=config.GRACEFUL_SHUTDOWN_TIMEOUT,
        poll_interval=config.HEALTH_CHECK_INTERVAL,
        health_timeout=config.HEALTH_CHECK_REQUEST_TIMEOUT,
        prepare=partial(apply_web_server_settings, config),
        output_path=config.LOGS_DIR / f"{WEB_SERVER_ID}.out.log",
    )


def create_registry(config) -> ServiceRegistry:
    """Returns a registry holding every service httpctl knows how to run."""
    registry = ServiceRegistry()
    registry.register(WEB_SERVER_ID, build_web_server(config))
    return registry


def create_supervisor(config, registry: ServiceRegistry = None) -> ServiceSupervisor:
    """
    Builds the supervisor for the configured service.

    The identifier is read from `MANAGED_SERVICE_ID` once, here.
    """
    registry = registry if registry is not None else create_registry(config)
    service_id = config.MANAGED_SERVICE_ID
    if service_id not in registry:
        log.warning(f"Configured service '{service_id}' is not registered. Known services: {registry.ids()}")
    return ServiceSupervisor(service_id, registry, label=config.MANAGED_SERVICE_LABEL)
