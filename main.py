# main.py

import argparse
import asyncio
import logging
import os
import socket
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
import yaml
from fastapi import FastAPI, Request

from config import Settings, load_settings
from lifecycle import FileChangeSignal, LifecycleWatcher, current_executable
from logging_config import setup_logging
from notifications import Notifications
from state import ServerState
from sync_runner import SyncRunner
from task_gate import TaskGate

# Routers
from routers.webhook import router as webhook_router

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


async def log_request(request: Request, call_next):
    client = f"{request.client.host}:{request.client.port}" if request.client else "-"
    logger.info(f"{request.method:<4} {client:<21} {request.url.path}")
    return await call_next(request)


def create_app(
        settings: Settings,
        runner: Optional[SyncRunner] = None,
        notifier: Optional[Notifications] = None,
) -> FastAPI:
    """
    Build the application and the state shared by its handlers. Tests pass
    their own runner and notifier.
    """
    state = ServerState(
        webhook_secret=settings.github_webhook_secret,
        gate=TaskGate(),
        runner=runner or SyncRunner(settings.sync_command),
        notifier=notifier or Notifications(settings.notifications),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await state.gate.drain()

    app = FastAPI(
        title="pullhook",
        description="Runs git pull on a GitHub webhook",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.server = state
    app.middleware("http")(log_request)
    app.include_router(webhook_router)
    return app


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


async def serve(settings: Settings) -> int:
    app = create_app(settings)
    watch_path = settings.watch_path or current_executable()
    logger.info(f"Running in: {os.getcwd()}")
    logger.info(f"Executable: {watch_path}")

    sock = bind_socket(settings.host, settings.port)
    host, port = sock.getsockname()[:2]
    logger.info(f"Listening on: {host}:{port}")

    server = uvicorn.Server(uvicorn.Config(app, log_config=None, lifespan="on"))
    serve_task = asyncio.create_task(server.serve(sockets=[sock]))

    liveness = FileChangeSignal(watch_path)
    try:
        liveness.start()
    except (OSError, RuntimeError) as e:
        # Keep serving, just without the ability to restart on upgrade.
        logger.warning(f"Failed to initialize watcher: {e}")
        liveness = None

    watcher = LifecycleWatcher(server, app.state.server.gate, liveness)
    try:
        return await watcher.run(serve_task)
    finally:
        if liveness is not None:
            liveness.stop()
        sock.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pullhook", description="Runs git pull on a GitHub webhook.")
    parser.add_argument("--config", help="YAML configuration file (default: $CONFIG_PATH or config.yaml)")
    parser.add_argument("--host", help="address to listen on")
    parser.add_argument("--port", type=int, help="port to use, 0 picks a free one")
    parser.add_argument("--secret", help="GitHub webhook secret")
    parser.add_argument("--watch", help="file whose change triggers a restart (default: this program)")
    parser.add_argument("--debug", action="store_true", default=None, help="verbose logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    overrides = {
        "host": args.host,
        "port": args.port,
        "github_webhook_secret": args.secret,
        "watch_path": args.watch,
        "debug": args.debug,
    }
    try:
        settings = load_settings(args.config, overrides)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"pullhook: {e}.", file=sys.stderr)
        return 1

    setup_logging(settings.debug, settings.log_db_path, settings.log_max_entries)
    logger.info("Starting pullhook...")
    try:
        return asyncio.run(serve(settings))
    except OSError as e:
        logger.error(f"Startup failed: {e}")
        print(f"pullhook: {e}.", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
