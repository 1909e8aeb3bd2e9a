"""
This module contains the default configuration settings for httpctl.
It defines paths, the managed web server, supervisor timeouts and logging.
Values read from the environment can be placed in a `.env` file.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
BIN_DIR = pathlib.Path(os.getenv("HTTPCTL_BIN_DIR", BASE_DIR / "bin"))
LOGS_DIR = pathlib.Path(os.getenv("HTTPCTL_LOGS_DIR", BASE_DIR / "logs"))

#* --- Application File Paths ---
LOG_FILE_PATH = LOGS_DIR / "httpctl.log"
OVERRIDES_JSON_PATH = BIN_DIR / "overrides.json"
HYPERCORN_CONFIG_PATH = BIN_DIR / "hypercorn_config.py"

#* --- Python Executable Configuration ---
PYTHON_EXECUTABLE = os.getenv("HTTPCTL_PYTHON", sys.executable)

#* --- Console Settings ---
# Commands are addressed as '<scope>:<function>', e.g. 'http:start'.
COMMAND_SCOPE = "http"
COMMAND_FUNCTIONS = ("start", "stop", "restart")
VERBOSE_LOGGING = False

#* --- Managed Service ---
# Identifier of the service the console controls. Resolved once per supervisor.
MANAGED_SERVICE_ID = os.getenv("HTTPCTL_SERVICE", "asgi_server")
MANAGED_SERVICE_LABEL = "HTTP Server"

#* --- Web Server Settings ---
WEB_SERVER_HOST = os.getenv("HTTPCTL_HOST", "127.0.0.1")
WEB_SERVER_PORT = int(os.getenv("HTTPCTL_PORT", "8000"))
HEALTH_CHECK_PATH = "/health"

#* --- Supervisor Settings ---
STARTUP_TIMEOUT = float(os.getenv("HTTPCTL_STARTUP_TIMEOUT", "15"))  # seconds
HEALTH_CHECK_INTERVAL = 0.5  # seconds between probes while starting
HEALTH_CHECK_REQUEST_TIMEOUT = 1.0
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing

#* --- MODIFIABLE SETTINGS (Changeable via 'config set', applied on restart) ---
MODIFIABLE_SETTINGS = {
    "WEB_SERVER_HOST", "WEB_SERVER_PORT",
    "STARTUP_TIMEOUT", "HEALTH_CHECK_INTERVAL", "GRACEFUL_SHUTDOWN_TIMEOUT",
}

#* --- Configuration Templates ---
HYPERCORN_CONFIG_TEMPLATE = """
# This file is auto-generated by httpctl. Do not edit directly.

bind = "{bind_host}:{bind_port}"

# -- Logging --
# Hypercorn logs go to stdout/stderr so the supervisor can capture them.
accesslog = "-"
errorlog = "-"
loglevel = "info"
"""
