import os
import sys
import logging
import contextlib
import setproctitle

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from httpctl.local.config import effective_settings as config

setproctitle.setproctitle("httpctl - Web Server")

# Output goes to stdout, which the supervisor pipes into its own logs.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger("asgi_server")


async def index(request: Request) -> PlainTextResponse:
    return PlainTextResponse("httpctl web server is running.\n")


async def health(request: Request) -> JSONResponse:
    """Liveness probe polled by the supervisor while the server starts."""
    return JSONResponse({"status": "ok", "pid": os.getpid()})


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    logger.info(f"Web server process {os.getpid()} ready on {config.WEB_SERVER_HOST}:{config.WEB_SERVER_PORT}.")
    yield
    logger.info(f"Web server process {os.getpid()} shutting down.")


routes = [
    Route("/", endpoint=index),
    Route(config.HEALTH_CHECK_PATH, endpoint=health),
]

app = Starlette(routes=routes, lifespan=lifespan)
